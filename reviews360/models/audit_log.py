"""
Audit Log model for tracking security-relevant actions.
"""
import enum
import json

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship

from reviews360.database import Base, IdType
from reviews360.utils.settings import utcnow


class AuditAction(enum.Enum):
    """Enumeration of auditable actions."""
    # Tenancy
    ORGANIZATION_CREATED = "ORGANIZATION_CREATED"
    DOMAIN_ADDED = "DOMAIN_ADDED"
    DOMAIN_REMOVED = "DOMAIN_REMOVED"
    AREA_CREATED = "AREA_CREATED"

    # Accounts
    PRINCIPAL_SIGNED_UP = "PRINCIPAL_SIGNED_UP"
    PRINCIPAL_ROLE_CHANGED = "PRINCIPAL_ROLE_CHANGED"
    PRINCIPAL_DELETED = "PRINCIPAL_DELETED"

    # Delegation
    AREA_PERMISSION_GRANTED = "AREA_PERMISSION_GRANTED"
    AREA_PERMISSION_CHANGED = "AREA_PERMISSION_CHANGED"
    AREA_PERMISSION_REVOKED = "AREA_PERMISSION_REVOKED"

    # Invitations
    INVITATION_ISSUED = "INVITATION_ISSUED"
    INVITATION_REDEEMED = "INVITATION_REDEEMED"
    INVITATION_REVOKED = "INVITATION_REVOKED"


class AuditLog(Base):
    """
    Audit log for tracking principal actions.
    Multi-tenant: filtered by organization_id.
    """
    __tablename__ = 'audit_log'

    id = Column(IdType, primary_key=True, autoincrement=True)
    organization_id = Column(IdType, ForeignKey('organization.id', ondelete='CASCADE'), nullable=True, index=True)
    principal_id = Column(IdType, ForeignKey('principal.id', ondelete='SET NULL'), nullable=True)
    action = Column(SQLEnum(AuditAction, native_enum=False, length=40), nullable=False, index=True)
    resource_type = Column(String(50))  # e.g., 'invitation', 'area_permission'
    resource_id = Column(IdType)  # ID of the affected resource
    details = Column(Text)  # JSON with additional details
    ip_address = Column(String(45))  # IPv4 or IPv6
    user_agent = Column(String(255))
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    # Relationships
    organization = relationship('Organization')
    principal = relationship('Principal')

    def to_dict(self):
        return {
            'id': self.id,
            'organization_id': self.organization_id,
            'principal_id': self.principal_id,
            'action': self.action.value,
            'resource_type': self.resource_type,
            'resource_id': self.resource_id,
            'details': json.loads(self.details) if self.details else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.action.value} by principal {self.principal_id} at {self.created_at}>"
