"""Area service - the minimum area management onboarding depends on."""
import logging

from reviews360.exceptions import NotFoundError, ValidationError
from reviews360.models import Area, AuditAction
from reviews360.roles import Action, Role, to_role
from reviews360.services.audit_service import log_action
from reviews360.services.permission_service import Resource, require

logger = logging.getLogger(__name__)


def get_area(session, area_id):
    area = session.get(Area, area_id) if area_id is not None else None
    if area is None:
        raise NotFoundError("Area not found")
    return area


def insert_area(session, organization_id, name, description=None):
    """Add an area without authorization checks (redemption path)."""
    name = (name or '').strip()
    if not name:
        raise ValidationError("Area name is required.")

    area = Area(
        organization_id=organization_id,
        name=name,
        description=(description or '').strip() or None
    )
    session.add(area)
    session.flush()
    return area


def create_area(session, actor, name, description=None, organization_id=None):
    """
    Create an area in the actor's organization (super admins pick one).

    Only org-wide roles may create areas.
    """
    if organization_id is None:
        organization_id = actor.organization_id
    if organization_id is None:
        raise ValidationError("organization_id is required.")

    require(session, actor, Action.MUTATE, Resource.for_organization(organization_id, kind='area'))
    area = insert_area(session, organization_id, name, description)

    log_action(
        session,
        AuditAction.AREA_CREATED,
        actor=actor,
        organization_id=organization_id,
        resource_type='area',
        resource_id=area.id,
        details={'name': area.name}
    )
    logger.info(f"Area '{area.name}' ({area.id}) created in organization {organization_id} by principal {actor.id}")
    return area


def list_areas(session, viewer, organization_id=None):
    """Areas visible to the viewer; super admins may filter by organization."""
    query = session.query(Area)
    if to_role(viewer.role) is Role.SUPER_ADMIN:
        if organization_id is not None:
            query = query.filter(Area.organization_id == organization_id)
    else:
        query = query.filter(Area.organization_id == viewer.organization_id)
    return query.order_by(Area.name.asc(), Area.id.asc()).all()
