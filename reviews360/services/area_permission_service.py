"""
Area permission store.

Records which principals administer or view which areas. The read side
(`level_for`, `admin_area_ids_for`) is a plain indexed lookup and never
consults the permission evaluator: the evaluator is built on top of these
facts, so asking it whether someone may read the delegation table while
computing delegation would loop back onto the same rows.
"""
from sqlalchemy.exc import IntegrityError
import logging

from reviews360.exceptions import DuplicateGrantError, NotFoundError, ValidationError, ForbiddenError
from reviews360.models import Area, AreaPermission, Principal, AuditAction
from reviews360.roles import AreaLevel, Role, can_assign, to_level, RolePolicy
from reviews360.services.audit_service import log_action

logger = logging.getLogger(__name__)


def level_for(session, area_id, principal_id):
    """
    Return the AreaLevel a principal holds on an area, or None.

    Single lookup on the (area_id, principal_id) unique index.
    """
    if area_id is None or principal_id is None:
        return None
    row = session.query(AreaPermission.level).filter(
        AreaPermission.area_id == area_id,
        AreaPermission.principal_id == principal_id
    ).first()
    return row[0] if row else None


def admin_area_ids_for(session, principal_id):
    """Return the set of area ids where the principal holds admin level."""
    rows = session.query(AreaPermission.area_id).filter(
        AreaPermission.principal_id == principal_id,
        AreaPermission.level == AreaLevel.ADMIN
    ).all()
    return {area_id for (area_id,) in rows}


def _parse_level(level):
    try:
        return to_level(level)
    except ValueError:
        raise ValidationError("Level must be 'admin' or 'viewer'.")


def _load_area_and_grantee(session, area_id, principal_id):
    area = session.get(Area, area_id)
    if area is None:
        raise NotFoundError("Area not found")
    grantee = session.get(Principal, principal_id)
    if grantee is None:
        raise NotFoundError("User not found")
    if grantee.organization_id != area.organization_id:
        raise ValidationError("User does not belong to the area's organization.")
    return area, grantee


def _authorize_delegation(session, actor, area, level):
    """Actor must be able to mutate the area; handing out admin needs area-admin assignment rights."""
    from reviews360.services.permission_service import Resource, require, log_denial
    from reviews360.roles import Action

    require(session, actor, Action.MUTATE, Resource.for_area(area))
    if level is AreaLevel.ADMIN and not can_assign(actor.role, Role.AREA_ADMIN, RolePolicy.from_config()):
        log_denial(actor, Action.MUTATE, Resource.for_area(area), reason='cannot delegate admin level')
        raise ForbiddenError()


def insert_grant(session, area_id, principal_id, level, granted_by_id=None):
    """
    Insert a grant row without authorization checks.

    Only for callers that already authorized the change (invitation redemption
    runs on the inviter's authority).
    """
    permission = AreaPermission(
        area_id=area_id,
        principal_id=principal_id,
        level=to_level(level),
        granted_by=granted_by_id
    )
    try:
        with session.begin_nested():
            session.add(permission)
            session.flush()
    except IntegrityError:
        logger.info(f"Duplicate grant for principal {principal_id} on area {area_id}")
        raise DuplicateGrantError()
    return permission


def grant(session, area_id, principal_id, level, granted_by):
    """
    Grant a principal a level on an area.

    Raises:
        NotFoundError: unknown area or principal
        ForbiddenError: granted_by may not delegate this area/level
        DuplicateGrantError: a row already exists (use set_level instead)
    """
    level = _parse_level(level)
    area, grantee = _load_area_and_grantee(session, area_id, principal_id)
    _authorize_delegation(session, granted_by, area, level)

    if level_for(session, area.id, grantee.id) is not None:
        raise DuplicateGrantError()

    permission = insert_grant(session, area.id, grantee.id, level, granted_by.id)

    log_action(
        session,
        AuditAction.AREA_PERMISSION_GRANTED,
        actor=granted_by,
        organization_id=area.organization_id,
        resource_type='area_permission',
        resource_id=permission.id,
        details={'area_id': area.id, 'principal_id': grantee.id, 'level': level.value}
    )
    logger.info(f"Principal {granted_by.id} granted {level.value} on area {area.id} to principal {grantee.id}")
    return permission


def set_level(session, area_id, principal_id, level, changed_by):
    """Change the level of an existing grant."""
    level = _parse_level(level)
    area, grantee = _load_area_and_grantee(session, area_id, principal_id)

    permission = session.query(AreaPermission).filter_by(
        area_id=area.id, principal_id=grantee.id
    ).first()
    if permission is None:
        raise NotFoundError("Area permission not found")

    # Demoting an admin is as sensitive as promoting to admin
    strongest = AreaLevel.ADMIN if AreaLevel.ADMIN in (level, permission.level) else level
    _authorize_delegation(session, changed_by, area, strongest)

    previous = permission.level
    permission.level = level
    session.flush()

    log_action(
        session,
        AuditAction.AREA_PERMISSION_CHANGED,
        actor=changed_by,
        organization_id=area.organization_id,
        resource_type='area_permission',
        resource_id=permission.id,
        details={'area_id': area.id, 'principal_id': grantee.id, 'from': previous.value, 'to': level.value}
    )
    return permission


def revoke(session, area_id, principal_id, revoked_by=None):
    """
    Remove a grant. Idempotent: revoking a missing grant is not an error.

    When revoked_by is given the same delegation rules as grant() apply, and
    the caller must be able to mutate the area before learning whether the
    grant exists.
    """
    if revoked_by is not None:
        from reviews360.services.permission_service import Resource, require
        from reviews360.roles import Action

        area = session.get(Area, area_id)
        if area is None:
            raise NotFoundError("Area not found")
        require(session, revoked_by, Action.MUTATE, Resource.for_area(area))

    permission = session.query(AreaPermission).filter_by(
        area_id=area_id, principal_id=principal_id
    ).first()
    if permission is None:
        return False

    if revoked_by is not None:
        _authorize_delegation(session, revoked_by, permission.area, permission.level)

    organization_id = permission.area.organization_id
    permission_id = permission.id
    level = permission.level
    session.delete(permission)
    session.flush()

    if revoked_by is not None:
        log_action(
            session,
            AuditAction.AREA_PERMISSION_REVOKED,
            actor=revoked_by,
            organization_id=organization_id,
            resource_type='area_permission',
            resource_id=permission_id,
            details={'area_id': area_id, 'principal_id': principal_id, 'level': level.value}
        )
    logger.info(f"Revoked {level.value} on area {area_id} from principal {principal_id}")
    return True


def list_grants(session, viewer, area_id):
    """
    List the grants on an area.

    Visible to org-wide roles of the organization and to admins of the area;
    any other principal only sees their own row. Visibility is decided from
    the viewer's own level_for fact, computed once.
    """
    from reviews360.services.permission_service import Resource, can
    from reviews360.roles import Action

    area = session.get(Area, area_id)
    if area is None:
        raise NotFoundError("Area not found")

    query = session.query(AreaPermission).filter(AreaPermission.area_id == area.id)
    if not can(session, viewer, Action.MUTATE, Resource.for_area(area), quiet=True):
        query = query.filter(AreaPermission.principal_id == viewer.id)
    return query.order_by(AreaPermission.id).all()
