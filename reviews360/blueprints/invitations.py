"""
Invitation management blueprint.
Client admins invite area admins and employees; area admins invite employees
into the areas they administer. Links are returned to the issuer, who delivers
them.
"""

from flask import Blueprint, request, jsonify, g

from reviews360.database import db_session, transaction
from reviews360.decorators.permissions import admins_only
from reviews360.middleware import require_login
from reviews360.services import invitation_service
from reviews360.utils.request_helpers import get_json_body, parse_bool, parse_int


invitations_bp = Blueprint('invitations', __name__, url_prefix='/invitations')


@invitations_bp.route('/', methods=['POST'])
@require_login
@admins_only
def create_invitation():
    data = get_json_body()
    with transaction(db_session):
        invitation = invitation_service.issue(
            db_session,
            g.principal,
            data.get('email', ''),
            data.get('invitation_type') or data.get('type', ''),
            area_id=parse_int(data.get('area_id'), 'area_id'),
            organization_id=parse_int(data.get('organization_id'), 'organization_id')
        )

    return jsonify({
        'status': 'ok',
        'invitation': invitation.to_dict(),
        'link': invitation_service.invitation_link(invitation.token),
    }), 201


@invitations_bp.route('/')
@require_login
@admins_only
def list_invitations():
    invitations = invitation_service.list_invitations(
        db_session,
        g.principal,
        include_inactive=parse_bool(request.args.get('include_inactive'))
    )
    return jsonify({'invitations': [i.to_dict() for i in invitations]})


@invitations_bp.route('/<int:invitation_id>', methods=['DELETE'])
@require_login
@admins_only
def delete_invitation(invitation_id):
    with transaction(db_session):
        invitation_service.revoke_invitation(db_session, g.principal, invitation_id)
    return jsonify({'status': 'ok'})
