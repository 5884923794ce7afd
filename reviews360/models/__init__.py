"""Models package - exports all SQLAlchemy models."""
from reviews360.models.organization import Organization
from reviews360.models.email_domain import EmailDomain
from reviews360.models.area import Area
from reviews360.models.principal import Principal
from reviews360.models.area_permission import AreaPermission
from reviews360.models.invitation import Invitation, InvitationState, InvalidReason
from reviews360.models.audit_log import AuditLog, AuditAction

__all__ = [
    # Tenancy
    'Organization', 'EmailDomain', 'Area',
    # Identity and delegation
    'Principal', 'AreaPermission',
    # Onboarding
    'Invitation', 'InvitationState', 'InvalidReason',
    # Audit
    'AuditLog', 'AuditAction',
]
