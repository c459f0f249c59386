"""
OrganizationInvitation model for email-based invitations.
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from taskflow.core.database import Base


class InvitationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


class OrganizationInvitation(Base):
    __tablename__ = "organization_invitations"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey('organizations.id'), nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)  # Stored lower-case
    token = Column(String(128), unique=True, nullable=False, index=True)
    role = Column(String(20), nullable=False)
    status = Column(
        SQLEnum(InvitationStatus, values_callable=lambda x: [e.value for e in x], name="invitation_status"),
        default=InvitationStatus.PENDING,
        nullable=False,
    )
    # Mirrors email while pending, NULL afterwards; backs the one-pending-per-email constraint
    pending_email = Column(String(255), nullable=True)
    invited_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    organization = relationship("Organization", back_populates="invitations")
    inviter = relationship("User", foreign_keys=[invited_by])

    __table_args__ = (
        UniqueConstraint('organization_id', 'pending_email', name='uq_organization_invitations_pending'),
    )
