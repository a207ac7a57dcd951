from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from app.models import user_model
from app.repository.base_repository import BaseRepository
from typing import Optional

class UserRepository(BaseRepository[user_model.Users]):
    def __init__(self):
        super().__init__(user_model.Users)

    async def get_user(self, db: AsyncSession, user_id: int) -> Optional[user_model.Users]:
        result = await db.execute(select(self.model).filter(self.model.id == user_id))
        return result.scalar_one_or_none()

user_repository = UserRepository()
