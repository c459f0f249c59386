"""
Organization model.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from taskflow.core.database import Base

THEMES = ("light", "dark")


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    code = Column(String(32), unique=True, index=True, nullable=False)  # Public join-code, immutable
    description = Column(Text, nullable=True)
    theme = Column(String(20), nullable=False, default="light")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    members = relationship("User", back_populates="organization")
    invitations = relationship("OrganizationInvitation", back_populates="organization", cascade="all, delete-orphan")

    @property
    def settings(self) -> dict:
        return {"theme": self.theme}
