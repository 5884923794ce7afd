"""
Account provisioning.

`sign_up` is the only way a principal comes into existence (the CLI bootstrap
of a super admin aside). Role, organization and area are always derived
server-side: from the email domain on an open signup, from the invitation on
an invited one.
"""
from dataclasses import dataclass, fields
from typing import Optional
import logging
import re

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from reviews360.database import transaction
from reviews360.exceptions import ForbiddenError, NotFoundError, UnauthenticatedError, UninvitedDomainError, ValidationError
from reviews360.models import AreaPermission, AuditAction, Principal
from reviews360.roles import Action, AreaLevel, Role, RolePolicy, can_assign, to_role
from reviews360.services import invitation_service
from reviews360.services.area_permission_service import insert_grant, level_for
from reviews360.services.area_service import get_area
from reviews360.services.audit_service import log_action
from reviews360.services.permission_service import Resource, can, log_denial, require
from reviews360.services.tenant_directory import resolve_domain
from reviews360.utils.settings import SIGNUP_MODE_OPEN_DOMAIN, get_setting, get_signup_mode

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL_MESSAGE = "An account with this email already exists."


def is_valid_email(email: str) -> bool:
    """Validate email format."""
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return re.match(pattern, email) is not None


@dataclass
class SignupDraft:
    """
    What a signing-up person may choose about their own account.

    There is deliberately no role or organization field: those are derived.
    area_id / new_area_* only matter for area admin invitations that left
    the area open.
    """
    email: str
    password: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    organization_name: Optional[str] = None
    area_id: Optional[int] = None
    new_area_name: Optional[str] = None
    new_area_description: Optional[str] = None

    @classmethod
    def from_payload(cls, email, password, payload=None):
        """Build a draft, silently dropping unknown keys such as role or organization_id."""
        known = {f.name for f in fields(cls)} - {'email', 'password'}
        extra = {k: v for k, v in (payload or {}).items() if k in known}
        if extra.get('area_id') not in (None, ''):
            try:
                extra['area_id'] = int(extra['area_id'])
            except (TypeError, ValueError):
                raise ValidationError("Invalid area id.")
        else:
            extra['area_id'] = None
        return cls(email=(email or '').strip().lower(), password=password or '', **extra)


def _validate_credentials(draft):
    errors = []
    if not draft.email or not is_valid_email(draft.email):
        errors.append('Invalid email address.')
    min_length = int(get_setting('MIN_PASSWORD_LENGTH'))
    if len(draft.password) < min_length:
        errors.append(f'Password must be at least {min_length} characters.')
    if errors:
        raise ValidationError(' '.join(errors))


def find_by_email(session, email):
    return session.query(Principal).filter(
        func.lower(Principal.email) == (email or '').strip().lower()
    ).first()


def get_principal(session, principal_id):
    principal = session.get(Principal, principal_id) if principal_id is not None else None
    if principal is None:
        raise NotFoundError("User not found")
    return principal


def insert_principal(session, draft, role, organization_id, area_id=None):
    """
    Add a principal row. Flushes; the caller's transaction commits.

    Only called from sign_up, invitation redemption and the super admin
    bootstrap.
    """
    if find_by_email(session, draft.email) is not None:
        raise ValidationError(DUPLICATE_EMAIL_MESSAGE, status_code=409)

    principal = Principal(
        email=draft.email,
        first_name=(draft.first_name or '').strip() or None,
        last_name=(draft.last_name or '').strip() or None,
        role=to_role(role),
        organization_id=organization_id,
        area_id=area_id
    )
    principal.set_password(draft.password)

    try:
        with session.begin_nested():
            session.add(principal)
            session.flush()
    except IntegrityError:
        raise ValidationError(DUPLICATE_EMAIL_MESSAGE, status_code=409)
    return principal


def sign_up(session, email, password, invite_token=None, **profile):
    """
    Create a principal.

    With an invite token the invitation decides everything (see
    invitation_service.redeem). Without one:
    - unseen domain: a new organization is created and the principal
      becomes its client_admin, with no area
    - known domain: joins as user in open-domain mode, rejected with
      UninvitedDomainError in invite-only mode

    Any 'role' or 'organization_id' in profile is ignored.
    """
    draft = SignupDraft.from_payload(email, password, profile)
    _validate_credentials(draft)

    if invite_token:
        return invitation_service.redeem(session, invite_token, draft)

    mode = get_signup_mode()
    with transaction(session):
        if find_by_email(session, draft.email) is not None:
            raise ValidationError(DUPLICATE_EMAIL_MESSAGE, status_code=409)

        resolution = resolve_domain(session, draft.email, draft.organization_name)
        if resolution.is_new_organization:
            role = Role.CLIENT_ADMIN
            path = 'new_organization'
        elif mode == SIGNUP_MODE_OPEN_DOMAIN:
            role = Role.USER
            path = 'open_domain'
        else:
            logger.warning(
                f"Uninvited signup for {draft.email} rejected: organization "
                f"{resolution.organization_id} is invite-only"
            )
            raise UninvitedDomainError()

        principal = insert_principal(session, draft, role, resolution.organization_id)

        log_action(
            session,
            AuditAction.PRINCIPAL_SIGNED_UP,
            actor=principal,
            resource_type='principal',
            resource_id=principal.id,
            details={'role': role.value, 'source': path}
        )

    from reviews360.blueprints.metrics import signups_total
    signups_total.labels(path=path).inc()

    logger.info(
        f"Principal {principal.id} signed up as {role.value} in organization "
        f"{principal.organization_id} ({path})"
    )
    return principal


def authenticate(session, email, password):
    """Return the principal for valid credentials, else raise UnauthenticatedError."""
    principal = find_by_email(session, email)
    if principal is None or not principal.check_password(password or ''):
        logger.info(f"Failed login attempt for {email!r}")
        raise UnauthenticatedError("Invalid email or password.")
    return principal


def update_profile(session, principal, first_name=None, last_name=None):
    """Principals edit their own names; nothing else about them."""
    require(session, principal, Action.MUTATE, Resource.for_principal(principal, principal))
    if first_name is not None:
        principal.first_name = first_name.strip() or None
    if last_name is not None:
        principal.last_name = last_name.strip() or None
    session.flush()
    return principal


def _require_rank_over(session, actor, target, target_role, operation):
    """Actor must be allowed to hand out both the target's current and new role."""
    policy = RolePolicy.from_config()
    resource = Resource.for_principal(target, actor)
    for role in {to_role(target.role), to_role(target_role)}:
        if not can_assign(actor.role, role, policy):
            log_denial(actor, Action.MUTATE, resource, reason=f"{operation}: cannot assign {role.value}")
            raise ForbiddenError()
    require(session, actor, Action.MUTATE, resource)


def change_role(session, actor, principal_id, role, area_id=None):
    """
    Change another principal's role (and primary area).

    Client admins lose their area; area admins get an admin grant on their
    new area; a demoted area admin loses their admin grants.
    """
    target = get_principal(session, principal_id)
    if target.id == actor.id:
        log_denial(actor, Action.MUTATE, Resource.for_principal(target, actor), reason='own role')
        raise ForbiddenError("You cannot change your own role.")

    try:
        new_role = to_role(role)
    except ValueError:
        raise ValidationError("Invalid role.")
    if new_role is Role.SUPER_ADMIN:
        raise ValidationError("Super admins are created from the command line.")

    _require_rank_over(session, actor, target, new_role, 'change_role')

    new_area = None
    if new_role is not Role.CLIENT_ADMIN:
        if area_id is not None:
            new_area = get_area(session, area_id)
            if new_area.organization_id != target.organization_id:
                raise ValidationError("The area does not belong to the user's organization.")
            require(session, actor, Action.MUTATE, Resource.for_area(new_area))
        elif new_role is Role.AREA_ADMIN:
            raise ValidationError("Area admins need an area.")

    previous_role = to_role(target.role)
    previous_area_id = target.area_id
    target.role = new_role
    if new_role is Role.CLIENT_ADMIN:
        target.area_id = None
    elif new_area is not None:
        target.area_id = new_area.id

    if new_role is Role.AREA_ADMIN and level_for(session, target.area_id, target.id) is None:
        insert_grant(session, target.area_id, target.id, AreaLevel.ADMIN, granted_by_id=actor.id)
    if previous_role is Role.AREA_ADMIN and new_role is Role.USER:
        session.query(AreaPermission).filter(
            AreaPermission.principal_id == target.id,
            AreaPermission.level == AreaLevel.ADMIN
        ).delete(synchronize_session=False)
        session.expire(target, ['area_permissions'])
    session.flush()

    log_action(
        session,
        AuditAction.PRINCIPAL_ROLE_CHANGED,
        actor=actor,
        organization_id=target.organization_id,
        resource_type='principal',
        resource_id=target.id,
        details={
            'from': previous_role.value,
            'to': new_role.value,
            'from_area_id': previous_area_id,
            'to_area_id': target.area_id,
        }
    )
    logger.info(f"Principal {actor.id} changed role of {target.id}: {previous_role.value} -> {new_role.value}")
    return target


def delete_principal(session, actor, principal_id):
    """Remove a principal and their area permissions."""
    target = get_principal(session, principal_id)
    if target.id == actor.id:
        log_denial(actor, Action.MUTATE, Resource.for_principal(target, actor), reason='self delete')
        raise ForbiddenError("You cannot delete your own account.")

    _require_rank_over(session, actor, target, target.role, 'delete')

    organization_id = target.organization_id
    email = target.email
    session.delete(target)
    session.flush()

    log_action(
        session,
        AuditAction.PRINCIPAL_DELETED,
        actor=actor,
        organization_id=organization_id,
        resource_type='principal',
        resource_id=principal_id,
        details={'email': email}
    )
    logger.info(f"Principal {actor.id} deleted principal {principal_id}")


def list_principals(session, viewer, organization_id=None):
    """Profiles the viewer may read, ordered by email."""
    query = session.query(Principal)
    role = to_role(viewer.role)
    if role is Role.SUPER_ADMIN:
        if organization_id is not None:
            query = query.filter(Principal.organization_id == organization_id)
    else:
        query = query.filter(Principal.organization_id == viewer.organization_id)

    principals = query.order_by(Principal.email.asc()).all()
    if role in (Role.SUPER_ADMIN, Role.CLIENT_ADMIN):
        return principals
    return [
        p for p in principals
        if can(session, viewer, Action.READ, Resource.for_principal(p, viewer), quiet=True)
    ]


def create_super_admin(session, email, password, first_name=None, last_name=None):
    """Bootstrap a platform super admin (no organization)."""
    draft = SignupDraft.from_payload(email, password, {'first_name': first_name, 'last_name': last_name})
    _validate_credentials(draft)

    with transaction(session):
        principal = insert_principal(session, draft, Role.SUPER_ADMIN, None)
        log_action(
            session,
            AuditAction.PRINCIPAL_SIGNED_UP,
            actor=principal,
            resource_type='principal',
            resource_id=principal.id,
            details={'role': Role.SUPER_ADMIN.value, 'source': 'cli'}
        )
    logger.info(f"Super admin {principal.id} ({principal.email}) created")
    return principal
