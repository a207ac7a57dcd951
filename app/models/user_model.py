from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    func,
)
from sqlalchemy.orm import relationship
from app.models.base import Base
from sqlalchemy import Boolean


class Users(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    name = Column(String(255))
    email = Column(String(255), unique=True, index=True, nullable=True)
    role = Column(String(50), nullable=False)  # super_admin|admin|employee
    is_active = Column(Boolean, default=True)

    # Employees point at the admin (tenant) that owns them
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    # Cached pointer only; the current subscription is always derived by date range
    active_subscription_id = Column(
        Integer, ForeignKey("subscriptions.id", use_alter=True, ondelete="SET NULL"), nullable=True
    )
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    owner = relationship("Users", remote_side=[id])
