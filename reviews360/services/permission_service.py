"""
Permission evaluator.

Answers "can principal P perform action A on resource R" from the role rank
table and one area-permission lookup. Every read/write path that needs an
authorization decision goes through `can` or `require`.

Rules:
- super_admin: always allowed
- client_admin: allowed on any resource of their own organization
- area_admin / user, same organization only:
    * area-scoped resource: the held area level must satisfy the action
      (admin to mutate, viewer or admin to read); a principal's own primary
      area counts as viewer
    * organization-wide resource: readable unless admin_only; mutable only
      by its owner
"""
from dataclasses import dataclass
from typing import Optional
import logging

from reviews360.exceptions import ForbiddenError, ValidationError
from reviews360.roles import Action, Role, level_satisfies, to_role
from reviews360.services.area_permission_service import level_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resource:
    """What is being acted on. organization_id is mandatory."""
    organization_id: Optional[int]
    area_id: Optional[int] = None
    owner_id: Optional[int] = None
    admin_only: bool = False
    kind: str = 'resource'
    id: Optional[int] = None

    @classmethod
    def for_area(cls, area, kind='area'):
        return cls(organization_id=area.organization_id, area_id=area.id, kind=kind, id=area.id)

    @classmethod
    def for_organization(cls, organization_id, admin_only=True, kind='organization'):
        return cls(organization_id=organization_id, admin_only=admin_only, kind=kind, id=organization_id)

    @classmethod
    def for_principal(cls, principal, actor=None):
        """
        A principal's profile, scoped to their area.

        Seen by the principal themselves it is an organization-level resource
        they own.
        """
        own_profile = actor is not None and actor.id == principal.id
        return cls(
            organization_id=principal.organization_id,
            area_id=None if own_profile else principal.area_id,
            owner_id=principal.id,
            kind='principal',
            id=principal.id,
        )

    def describe(self):
        return (
            f"{self.kind}(id={self.id}, organization_id={self.organization_id}, "
            f"area_id={self.area_id})"
        )


def _count_denial():
    from reviews360.blueprints.metrics import authorization_denials_total
    authorization_denials_total.inc()


def log_denial(principal, action, resource, reason='denied'):
    """Audit trail for every negative decision."""
    principal_desc = 'anonymous' if principal is None else f"{principal.id} ({principal.role.value})"
    action_value = action.value if isinstance(action, Action) else action
    logger.warning(
        f"Authorization denied: principal={principal_desc} action={action_value} "
        f"resource={resource.describe()} reason={reason}"
    )
    _count_denial()


def can(session, principal, action, resource, quiet=False):
    """
    Return True if principal may perform action on resource.

    Denial is a value, not an error. Raises ValidationError only for a
    malformed resource (no organization).
    """
    if resource is None or resource.organization_id is None:
        raise ValidationError("Resource must carry an organization_id.")
    action = action if isinstance(action, Action) else Action(action)

    def deny(reason):
        if not quiet:
            log_denial(principal, action, resource, reason)
        return False

    if principal is None:
        return deny('no principal')

    role = to_role(principal.role)
    if role is Role.SUPER_ADMIN:
        return True

    if principal.organization_id != resource.organization_id:
        return deny('other organization')

    if role is Role.CLIENT_ADMIN:
        return True

    if resource.area_id is None:
        if resource.owner_id is not None and resource.owner_id == principal.id:
            return True
        if action is Action.READ and not resource.admin_only:
            return True
        return deny('organization-level resource')

    if action is Action.READ and principal.area_id == resource.area_id:
        return True

    level = level_for(session, resource.area_id, principal.id)
    if level_satisfies(level, action.required_level):
        return True
    return deny(f"area level {level.value if level else 'none'}")


def require(session, principal, action, resource):
    """Raise ForbiddenError unless can() allows the action."""
    if not can(session, principal, action, resource):
        raise ForbiddenError()


def is_platform_admin(principal):
    """Platform-level operations (creating organizations) have no tenant resource."""
    return principal is not None and to_role(principal.role) is Role.SUPER_ADMIN


def require_platform_admin(principal, operation):
    if not is_platform_admin(principal):
        log_denial(principal, Action.MUTATE, Resource(organization_id=None, kind=operation), reason='platform operation')
        raise ForbiddenError()
