"""
User model for authentication and organization membership.
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from taskflow.core.database import Base


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    MEMBER = "member"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)  # Stored lower-case
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.MEMBER.value)
    organization_id = Column(Integer, ForeignKey('organizations.id'), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    organization = relationship("Organization", back_populates="members")

    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def is_manager_or_admin(self) -> bool:
        return self.role in (UserRole.ADMIN.value, UserRole.MANAGER.value)
