"""
Areas blueprint.
Area listing/creation and the area permission (delegation) endpoints.
"""

from flask import Blueprint, request, jsonify, g

from reviews360.database import db_session, transaction
from reviews360.middleware import require_login
from reviews360.services import area_permission_service, area_service
from reviews360.utils.request_helpers import get_json_body, parse_int


areas_bp = Blueprint('areas', __name__, url_prefix='/areas')


@areas_bp.route('/')
@require_login
def list_areas():
    areas = area_service.list_areas(
        db_session, g.principal,
        organization_id=parse_int(request.args.get('organization_id'), 'organization_id')
    )
    return jsonify({'areas': [a.to_dict() for a in areas]})


@areas_bp.route('/', methods=['POST'])
@require_login
def create_area():
    data = get_json_body()
    with transaction(db_session):
        area = area_service.create_area(
            db_session,
            g.principal,
            data.get('name', ''),
            description=data.get('description'),
            organization_id=parse_int(data.get('organization_id'), 'organization_id')
        )
    return jsonify({'status': 'ok', 'area': area.to_dict()}), 201


@areas_bp.route('/admin-ids')
@require_login
def admin_area_ids():
    """Areas the current principal administers through explicit grants."""
    ids = area_permission_service.admin_area_ids_for(db_session, g.principal.id)
    return jsonify({'area_ids': sorted(ids)})


@areas_bp.route('/<int:area_id>/permissions')
@require_login
def list_permissions(area_id):
    grants = area_permission_service.list_grants(db_session, g.principal, area_id)
    return jsonify({'permissions': [p.to_dict() for p in grants]})


@areas_bp.route('/<int:area_id>/permissions', methods=['POST'])
@require_login
def grant_permission(area_id):
    data = get_json_body()
    with transaction(db_session):
        permission = area_permission_service.grant(
            db_session,
            area_id,
            parse_int(data.get('principal_id'), 'principal_id', required=True),
            data.get('level', ''),
            g.principal
        )
    return jsonify({'status': 'ok', 'permission': permission.to_dict()}), 201


@areas_bp.route('/<int:area_id>/permissions/<int:principal_id>', methods=['PATCH'])
@require_login
def update_permission(area_id, principal_id):
    data = get_json_body()
    with transaction(db_session):
        permission = area_permission_service.set_level(
            db_session, area_id, principal_id, data.get('level', ''), g.principal
        )
    return jsonify({'status': 'ok', 'permission': permission.to_dict()})


@areas_bp.route('/<int:area_id>/permissions/<int:principal_id>', methods=['DELETE'])
@require_login
def revoke_permission(area_id, principal_id):
    with transaction(db_session):
        removed = area_permission_service.revoke(db_session, area_id, principal_id, revoked_by=g.principal)
    return jsonify({'status': 'ok', 'removed': removed})
