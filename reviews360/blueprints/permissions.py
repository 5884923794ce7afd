"""
Permission check blueprint.
Lets a front end ask the evaluator before showing an action.
"""

from flask import Blueprint, jsonify, g

from reviews360.database import db_session
from reviews360.exceptions import ValidationError
from reviews360.middleware import require_login
from reviews360.roles import Action
from reviews360.services.permission_service import Resource, can
from reviews360.utils.request_helpers import get_json_body, parse_bool, parse_int


permissions_bp = Blueprint('permissions', __name__, url_prefix='/permissions')


@permissions_bp.route('/check', methods=['POST'])
@require_login
def check():
    """
    Body: action ('read' | 'mutate'), organization_id (defaults to the
    caller's), area_id, owner_id, admin_only.
    """
    data = get_json_body()
    try:
        action = Action(data.get('action', ''))
    except ValueError:
        raise ValidationError("action must be 'read' or 'mutate'.")

    organization_id = parse_int(data.get('organization_id'), 'organization_id')
    resource = Resource(
        organization_id=organization_id if organization_id is not None else g.principal.organization_id,
        area_id=parse_int(data.get('area_id'), 'area_id'),
        owner_id=parse_int(data.get('owner_id'), 'owner_id'),
        admin_only=parse_bool(data.get('admin_only')),
        kind=str(data.get('kind') or 'resource')[:50],
    )
    return jsonify({'allowed': can(db_session, g.principal, action, resource)})
