from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.database import db_manager
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from app.core.config import settings
from app.models import user_model
from app.schemas import token_schema
from app.repository.user_repository import user_repository

# Tokens are issued by the account service; this service only verifies them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/user/token")

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async for session in db_manager.get_db_session():
        yield session

# --- User Authentication and Authorization Dependencies ---

async def get_current_user(token: str = Depends(oauth2_scheme), db: AsyncSession = Depends(get_db)) -> user_model.Users:
    """
    Dependency to get the current user from a JWT token.
    Decodes the token, validates the user, and returns the full user object.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id: str = payload.get("sub")
        if user_id is None:
            raise credentials_exception

        token_data = token_schema.TokenData(
            sub=str(user_id),
            role=payload.get("role"),
            owner_id=payload.get("owner_id"),
            name=payload.get("name"),
        )

    except JWTError:
        raise credentials_exception

    if not token_data.sub.isdigit():
        raise credentials_exception

    user = await user_repository.get_user(db, user_id=int(token_data.sub))
    if user is None or not user.is_active:
        raise credentials_exception

    return user

async def get_current_super_admin(current_user: user_model.Users = Depends(get_current_user)) -> user_model.Users:
    """
    Dependency to ensure the user is a super admin.
    """
    if current_user.role != 'super_admin':
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="The user does not have super admin privileges",
        )
    return current_user

async def get_current_tenant_admin(current_user: user_model.Users = Depends(get_current_user)) -> user_model.Users:
    """
    Dependency to ensure the user is a tenant admin.
    """
    if current_user.role != 'admin':
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="The user does not have tenant admin privileges",
        )
    return current_user

async def get_current_tenant_member(current_user: user_model.Users = Depends(get_current_user)) -> user_model.Users:
    """
    Dependency to ensure the user belongs to a tenant (admin or employee).
    """
    if current_user.role not in ('admin', 'employee'):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="The user does not belong to a tenant",
        )
    return current_user
