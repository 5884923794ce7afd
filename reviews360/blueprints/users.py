"""
User management blueprint.
Lists the profiles a principal may see and lets admins change roles or remove
users within their scope.
"""

from flask import Blueprint, request, jsonify, g

from reviews360.database import db_session, transaction
from reviews360.decorators.permissions import admins_only
from reviews360.middleware import require_login
from reviews360.services import account_service
from reviews360.utils.request_helpers import get_json_body, parse_int


users_bp = Blueprint('users', __name__, url_prefix='/users')


@users_bp.route('/')
@require_login
def list_users():
    principals = account_service.list_principals(
        db_session, g.principal,
        organization_id=parse_int(request.args.get('organization_id'), 'organization_id')
    )
    return jsonify({'users': [p.to_dict() for p in principals]})


@users_bp.route('/me', methods=['PATCH'])
@require_login
def update_me():
    data = get_json_body()
    with transaction(db_session):
        principal = account_service.update_profile(
            db_session, g.principal,
            first_name=data.get('first_name'),
            last_name=data.get('last_name')
        )
    return jsonify({'status': 'ok', 'principal': principal.to_dict()})


@users_bp.route('/<int:principal_id>/role', methods=['PATCH'])
@require_login
@admins_only
def change_role(principal_id):
    data = get_json_body()
    with transaction(db_session):
        principal = account_service.change_role(
            db_session,
            g.principal,
            principal_id,
            data.get('role', ''),
            area_id=parse_int(data.get('area_id'), 'area_id')
        )
    return jsonify({'status': 'ok', 'principal': principal.to_dict()})


@users_bp.route('/<int:principal_id>', methods=['DELETE'])
@require_login
@admins_only
def remove_user(principal_id):
    with transaction(db_session):
        account_service.delete_principal(db_session, g.principal, principal_id)
    return jsonify({'status': 'ok'})
