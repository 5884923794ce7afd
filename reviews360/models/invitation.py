"""Invitation model - single-use, expiring signup token."""
import enum

from sqlalchemy import Column, String, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship

from reviews360.database import Base, IdType
from reviews360.roles import InvitationType, role_for_invitation
from reviews360.utils.settings import utcnow


class InvitationState(enum.Enum):
    """Lifecycle: pending -> consumed, or pending -> expired. Both terminal."""
    PENDING = 'pending'
    CONSUMED = 'consumed'
    EXPIRED = 'expired'


class InvalidReason(enum.Enum):
    """Why a token cannot be redeemed. Logged, never shown to the caller."""
    NOT_FOUND = 'not_found'
    EXPIRED = 'expired'
    ALREADY_USED = 'already_used'


class Invitation(Base):
    """
    Invitation model.

    `area_id` is required for employee invitations and optional for area admin
    invitations (the invitee then picks or creates an area when redeeming).
    The state is derived from `used_at` and `expires_at`; expiry is never
    written.
    """

    __tablename__ = 'invitation'

    id = Column(IdType, primary_key=True, autoincrement=True)
    organization_id = Column(IdType, ForeignKey('organization.id', ondelete='CASCADE'), nullable=False, index=True)
    invited_by = Column(IdType, ForeignKey('principal.id', ondelete='SET NULL'), nullable=True)
    email = Column(String(255), nullable=False)
    invitation_type = Column(
        Enum(InvitationType, name='invitation_type', native_enum=False, length=20,
             values_callable=lambda types: [t.value for t in types]),
        nullable=False,
    )
    area_id = Column(IdType, ForeignKey('area.id', ondelete='CASCADE'), nullable=True, index=True)
    token = Column(String(128), nullable=False, unique=True)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    organization = relationship('Organization')
    area = relationship('Area')
    inviter = relationship('Principal', foreign_keys=[invited_by])

    def state(self, now=None):
        """Derive the lifecycle state; consumed wins over expired."""
        if self.used_at is not None:
            return InvitationState.CONSUMED
        if (now or utcnow()) > self.expires_at:
            return InvitationState.EXPIRED
        return InvitationState.PENDING

    def invalid_reason(self, now=None):
        """InvalidReason for a non-pending invitation, or None."""
        state = self.state(now)
        if state is InvitationState.CONSUMED:
            return InvalidReason.ALREADY_USED
        if state is InvitationState.EXPIRED:
            return InvalidReason.EXPIRED
        return None

    @property
    def granted_role(self):
        return role_for_invitation(self.invitation_type)

    def to_dict(self, now=None):
        return {
            'id': self.id,
            'organization_id': self.organization_id,
            'invited_by': self.invited_by,
            'email': self.email,
            'invitation_type': self.invitation_type.value,
            'area_id': self.area_id,
            'expires_at': self.expires_at.isoformat(),
            'used_at': self.used_at.isoformat() if self.used_at else None,
            'state': self.state(now).value,
        }

    def __repr__(self):
        return f"<Invitation(id={self.id}, email='{self.email}', type='{self.invitation_type.value}', used_at={self.used_at})>"
