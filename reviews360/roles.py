"""
Role and permission vocabulary.

Roles are a flat enum with an explicit rank table:

    super_admin > client_admin > area_admin > user

Every authorization decision elsewhere is built from the pure functions in
this module plus a single area-permission lookup. Nothing here touches the
database.
"""
import enum
from dataclasses import dataclass


class Role(enum.Enum):
    """Principal roles, highest first."""
    SUPER_ADMIN = 'super_admin'
    CLIENT_ADMIN = 'client_admin'
    AREA_ADMIN = 'area_admin'
    USER = 'user'


ROLE_RANK = {
    Role.SUPER_ADMIN: 4,
    Role.CLIENT_ADMIN: 3,
    Role.AREA_ADMIN: 2,
    Role.USER: 1,
}


class AreaLevel(enum.Enum):
    """Delegation level held on one area."""
    ADMIN = 'admin'
    VIEWER = 'viewer'


LEVEL_RANK = {
    AreaLevel.ADMIN: 2,
    AreaLevel.VIEWER: 1,
}


class Action(enum.Enum):
    """What a principal wants to do with a resource."""
    READ = 'read'
    MUTATE = 'mutate'

    @property
    def required_level(self):
        """Minimum area level needed by non org-wide roles."""
        return AreaLevel.ADMIN if self is Action.MUTATE else AreaLevel.VIEWER


class InvitationType(enum.Enum):
    AREA_ADMIN = 'area_admin'
    EMPLOYEE = 'employee'


INVITATION_ROLES = {
    InvitationType.AREA_ADMIN: Role.AREA_ADMIN,
    InvitationType.EMPLOYEE: Role.USER,
}


@dataclass(frozen=True)
class RolePolicy:
    """Deployment switches for assignments the product has flip-flopped on."""
    client_admin_can_assign_client_admin: bool = True
    area_admin_can_invite_area_admin: bool = False

    @classmethod
    def from_config(cls):
        from reviews360.utils.settings import get_setting
        return cls(
            client_admin_can_assign_client_admin=bool(get_setting('CLIENT_ADMIN_CAN_ASSIGN_CLIENT_ADMIN')),
            area_admin_can_invite_area_admin=bool(get_setting('AREA_ADMIN_CAN_INVITE_AREA_ADMIN')),
        )


def to_role(value):
    """Coerce a Role or its string value into a Role (ValueError otherwise)."""
    if isinstance(value, Role):
        return value
    return Role(value)


def to_level(value):
    if isinstance(value, AreaLevel):
        return value
    return AreaLevel(value)


def to_invitation_type(value):
    if isinstance(value, InvitationType):
        return value
    return InvitationType(value)


def rank(role):
    return ROLE_RANK[to_role(role)]


def outranks(role_a, role_b):
    """True if role_a is strictly above role_b."""
    return rank(role_a) > rank(role_b)


def is_org_wide(role):
    """Org-wide roles act over every area in scope without per-area rows."""
    return to_role(role) in (Role.SUPER_ADMIN, Role.CLIENT_ADMIN)


def can_assign(actor_role, target_role, policy=None):
    """
    Whether a principal with actor_role may hand out target_role.

    Scope (which organization, which area) is checked separately by the
    permission evaluator; this only closes escalation through role choice.
    """
    policy = policy or RolePolicy()
    actor_role = to_role(actor_role)
    target_role = to_role(target_role)

    if actor_role is Role.SUPER_ADMIN:
        return True
    if actor_role is target_role:
        # peers only where the policy allows it
        if actor_role is Role.CLIENT_ADMIN:
            return policy.client_admin_can_assign_client_admin
        if actor_role is Role.AREA_ADMIN:
            return policy.area_admin_can_invite_area_admin
        return False
    return outranks(actor_role, target_role)


def role_for_invitation(invitation_type):
    return INVITATION_ROLES[to_invitation_type(invitation_type)]


def level_satisfies(level, required):
    """True if the held level (possibly None) meets the required one."""
    if level is None:
        return False
    return LEVEL_RANK[to_level(level)] >= LEVEL_RANK[to_level(required)]
