"""
Invitation service.

Issues, validates and redeems single-use, expiring signup tokens. An
invitation is pending until it is consumed (used_at set, exactly once) or
until expires_at passes. Redemption claims the token with a conditional
UPDATE so concurrent redeemers cannot both succeed, and the claim commits in
the same transaction as the principal it creates.
"""
from datetime import timedelta
import logging
import secrets

from sqlalchemy.exc import IntegrityError

from reviews360.database import transaction
from reviews360.exceptions import (
    DomainMismatchError, ForbiddenError, InvitationExpiredError, InvitationNotFoundError,
    InvitationUsedError, NotFoundError, StorageError, ValidationError
)
from reviews360.models import AuditAction, Invitation, InvalidReason
from reviews360.roles import (
    Action, AreaLevel, InvitationType, Role, RolePolicy, can_assign, role_for_invitation,
    to_invitation_type, to_role
)
from reviews360.services.area_permission_service import admin_area_ids_for, insert_grant
from reviews360.services.area_service import get_area, insert_area
from reviews360.services.audit_service import log_action
from reviews360.services.permission_service import Resource, log_denial, require
from reviews360.services.tenant_directory import extract_domain, get_organization, lookup_domain
from reviews360.utils.settings import get_setting, utcnow

logger = logging.getLogger(__name__)

MIN_TOKEN_BYTES = 16  # 128 bits
TOKEN_ATTEMPTS = 3

_REASON_ERRORS = {
    InvalidReason.NOT_FOUND: InvitationNotFoundError,
    InvalidReason.EXPIRED: InvitationExpiredError,
    InvalidReason.ALREADY_USED: InvitationUsedError,
}


def generate_token(byte_length=None):
    """URL-safe random token; never fewer than 16 random bytes."""
    byte_length = int(byte_length or get_setting('TOKEN_BYTE_LENGTH'))
    return secrets.token_urlsafe(max(byte_length, MIN_TOKEN_BYTES))


def invitation_link(token, origin=None):
    """Signup URL carrying the token: {origin}/auth?invite={token}"""
    origin = (origin or get_setting('APP_ORIGIN')).rstrip('/')
    return f"{origin}/auth?invite={token}"


def _token_hint(token):
    return f"{token[:6]}..." if token else '<empty>'


def issue(session, issuer, email, invitation_type, area_id=None, organization_id=None, now=None):
    """
    Create a pending invitation.

    client_admin: area_admin or employee invitations in their organization
    area_admin: employee invitations for areas they administer
    super_admin: anything

    Employee invitations need an area; area admin invitations may leave it
    for the invitee to pick when redeeming. Does not send anything.
    """
    try:
        invitation_type = to_invitation_type(invitation_type)
    except ValueError:
        raise ValidationError("Invalid invitation type.")

    email = (email or '').strip().lower()
    invitee_domain = extract_domain(email)

    target_role = role_for_invitation(invitation_type)
    if not can_assign(issuer.role, target_role, RolePolicy.from_config()):
        log_denial(
            issuer, Action.MUTATE,
            Resource(organization_id=organization_id or issuer.organization_id, area_id=area_id, kind='invitation'),
            reason=f"cannot assign {target_role.value}"
        )
        raise ForbiddenError()

    area = None
    if area_id is not None:
        area = get_area(session, area_id)
        if organization_id is None:
            organization_id = area.organization_id
        elif area.organization_id != organization_id:
            raise ValidationError("The area does not belong to this organization.")
    if organization_id is None:
        organization_id = issuer.organization_id
    if organization_id is None:
        raise ValidationError("organization_id is required.")
    organization = get_organization(session, organization_id)

    if invitation_type is InvitationType.EMPLOYEE and area is None:
        raise ValidationError("Employee invitations require an area.")

    if area is not None:
        require(session, issuer, Action.MUTATE, Resource.for_area(area, kind='invitation'))
    else:
        require(session, issuer, Action.MUTATE, Resource.for_organization(organization.id, kind='invitation'))

    owner = lookup_domain(session, email)
    if owner is None or owner.id != organization.id:
        raise ValidationError(f"The domain {invitee_domain} is not registered for this organization.")

    now = now or utcnow()
    expires_at = now + timedelta(days=int(get_setting('INVITATION_EXPIRY_DAYS')))

    invitation = None
    for attempt in range(TOKEN_ATTEMPTS):
        candidate = Invitation(
            organization_id=organization.id,
            invited_by=issuer.id,
            email=email,
            invitation_type=invitation_type,
            area_id=area.id if area is not None else None,
            token=generate_token(),
            expires_at=expires_at,
            created_at=now,
            updated_at=now
        )
        try:
            with session.begin_nested():
                session.add(candidate)
                session.flush()
            invitation = candidate
            break
        except IntegrityError:
            logger.warning(f"Invitation token collision (attempt {attempt + 1})")
    if invitation is None:
        raise StorageError()

    log_action(
        session,
        AuditAction.INVITATION_ISSUED,
        actor=issuer,
        organization_id=organization.id,
        resource_type='invitation',
        resource_id=invitation.id,
        details={'email': email, 'type': invitation_type.value, 'area_id': invitation.area_id}
    )

    from reviews360.blueprints.metrics import invitations_issued_total
    invitations_issued_total.labels(invitation_type=invitation_type.value).inc()

    logger.info(
        f"Principal {issuer.id} issued {invitation_type.value} invitation {invitation.id} "
        f"for {email} in organization {organization.id}"
    )
    return invitation


def validate(session, token, now=None):
    """
    Check whether a token can be redeemed.

    Returns:
        (invitation, None) when pending, (None, InvalidReason) otherwise.
    """
    if not token:
        return None, InvalidReason.NOT_FOUND

    invitation = session.query(Invitation).filter_by(token=token).first()
    if invitation is None:
        logger.info(f"Invitation token {_token_hint(token)} not found")
        return None, InvalidReason.NOT_FOUND

    reason = invitation.invalid_reason(now)
    if reason is not None:
        logger.info(f"Invitation {invitation.id} is not redeemable: {reason.value}")
        return None, reason
    return invitation, None


def _invalid_token_error(session, token, now):
    """Work out why a claim failed, log it, and build the (generic) error."""
    invitation = session.query(Invitation).filter_by(token=token).first()
    if invitation is None:
        reason = InvalidReason.NOT_FOUND
    else:
        # A claim that matched nothing on a pending row means someone else won
        reason = invitation.invalid_reason(now) or InvalidReason.ALREADY_USED
    logger.warning(f"Invitation redemption rejected for token {_token_hint(token)}: {reason.value}")
    return _REASON_ERRORS[reason]()


def _claim(session, token, now):
    """Compare-and-set used_at; returns True if this caller consumed the token."""
    claimed = session.query(Invitation).filter(
        Invitation.token == token,
        Invitation.used_at.is_(None),
        Invitation.expires_at >= now
    ).update(
        {Invitation.used_at: now, Invitation.updated_at: now},
        synchronize_session=False
    )
    return claimed == 1


def _resolve_area_for(session, invitation, draft):
    """Area for the new principal: forced by the invitation, or chosen/created by the invitee."""
    if invitation.area_id is not None:
        return invitation.area_id

    if draft.area_id is not None:
        try:
            area = get_area(session, draft.area_id)
        except NotFoundError:
            raise ValidationError("The selected area does not exist.")
        if area.organization_id != invitation.organization_id:
            raise ValidationError("The selected area does not exist.")
        return area.id

    if draft.new_area_name:
        area = insert_area(session, invitation.organization_id, draft.new_area_name, draft.new_area_description)
        log_action(
            session,
            AuditAction.AREA_CREATED,
            organization_id=invitation.organization_id,
            resource_type='area',
            resource_id=area.id,
            details={'name': area.name, 'source': 'invitation', 'invitation_id': invitation.id}
        )
        return area.id

    raise ValidationError("Select an existing area or create a new one to finish signing up.")


def redeem(session, token, draft, now=None):
    """
    Consume an invitation and create the invited principal.

    Role, organization and area come from the invitation; anything else the
    caller sent is ignored. The token claim, the principal, its admin grant
    and the audit entries commit together or not at all.

    Raises:
        InvitationNotFoundError / InvitationExpiredError / InvitationUsedError
        DomainMismatchError: the email's domain belongs to another organization
        ValidationError: bad credentials, taken email, missing area choice
    """
    from reviews360.services.account_service import insert_principal

    now = now or utcnow()
    email = (draft.email or '').strip().lower()

    with transaction(session):
        if not token or not _claim(session, token, now):
            raise _invalid_token_error(session, token, now)

        invitation = session.query(Invitation).populate_existing().filter_by(token=token).one()

        organization = lookup_domain(session, email)
        if organization is None or organization.id != invitation.organization_id:
            logger.warning(
                f"Invitation {invitation.id} for organization {invitation.organization_id} "
                f"redeemed with foreign domain of {email}"
            )
            raise DomainMismatchError()

        role = to_role(invitation.granted_role)
        if invitation.invitation_type is InvitationType.EMPLOYEE:
            area_id = invitation.area_id
        else:
            area_id = _resolve_area_for(session, invitation, draft)

        principal = insert_principal(session, draft, role, invitation.organization_id, area_id)

        if role is Role.AREA_ADMIN:
            insert_grant(session, area_id, principal.id, AreaLevel.ADMIN, granted_by_id=invitation.invited_by)

        log_action(
            session,
            AuditAction.INVITATION_REDEEMED,
            actor=principal,
            resource_type='invitation',
            resource_id=invitation.id,
            details={'type': invitation.invitation_type.value, 'area_id': area_id, 'invited_by': invitation.invited_by}
        )
        log_action(
            session,
            AuditAction.PRINCIPAL_SIGNED_UP,
            actor=principal,
            resource_type='principal',
            resource_id=principal.id,
            details={'role': role.value, 'source': 'invitation'}
        )

    from reviews360.blueprints.metrics import invitations_redeemed_total, signups_total
    invitations_redeemed_total.labels(invitation_type=invitation.invitation_type.value).inc()
    signups_total.labels(path='invitation').inc()

    logger.info(f"Invitation {invitation.id} redeemed by principal {principal.id} ({role.value})")
    return principal


def _invitation_resource(invitation):
    return Resource(
        organization_id=invitation.organization_id,
        area_id=invitation.area_id,
        owner_id=invitation.invited_by,
        kind='invitation',
        id=invitation.id,
    )


def list_invitations(session, viewer, include_inactive=False, now=None):
    """
    Invitations the viewer manages.

    super_admin: all; client_admin: their organization; area_admin: employee
    invitations for areas they administer plus the ones they issued.
    """
    now = now or utcnow()
    query = session.query(Invitation)
    role = to_role(viewer.role)

    if role is Role.SUPER_ADMIN:
        pass
    elif role is Role.CLIENT_ADMIN:
        query = query.filter(Invitation.organization_id == viewer.organization_id)
    else:
        area_ids = admin_area_ids_for(session, viewer.id)
        scope = Invitation.invited_by == viewer.id
        if area_ids:
            scope = scope | (
                (Invitation.invitation_type == InvitationType.EMPLOYEE) & Invitation.area_id.in_(area_ids)
            )
        query = query.filter(Invitation.organization_id == viewer.organization_id, scope)

    if not include_inactive:
        query = query.filter(Invitation.used_at.is_(None), Invitation.expires_at >= now)

    return query.order_by(Invitation.created_at.desc(), Invitation.id.desc()).all()


def revoke_invitation(session, actor, invitation_id):
    """Delete a pending invitation. Consumed invitations are kept for the audit trail."""
    invitation = session.get(Invitation, invitation_id)
    if invitation is None:
        raise NotFoundError("Invitation not found")

    require(session, actor, Action.MUTATE, _invitation_resource(invitation))
    if invitation.used_at is not None:
        raise ValidationError("This invitation has already been used and cannot be revoked.", status_code=409)

    details = {'email': invitation.email, 'type': invitation.invitation_type.value}
    organization_id = invitation.organization_id
    session.delete(invitation)
    session.flush()

    log_action(
        session,
        AuditAction.INVITATION_REVOKED,
        actor=actor,
        organization_id=organization_id,
        resource_type='invitation',
        resource_id=invitation_id,
        details=details
    )
    logger.info(f"Invitation {invitation_id} revoked by principal {actor.id}")


def purge_expired(session, older_than_days=30, now=None):
    """Delete never-used invitations that expired more than N days ago."""
    cutoff = (now or utcnow()) - timedelta(days=older_than_days)
    deleted = session.query(Invitation).filter(
        Invitation.used_at.is_(None),
        Invitation.expires_at < cutoff
    ).delete(synchronize_session=False)
    logger.info(f"Purged {deleted} expired invitations (cutoff {cutoff.isoformat()})")
    return deleted
