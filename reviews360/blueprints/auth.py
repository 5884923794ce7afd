"""
Authentication blueprint.
Handles signup (open or invited), login, logout and the signup form helpers.
"""

from flask import Blueprint, request, jsonify, g
import logging

from reviews360.database import db_session
from reviews360.exceptions import INVALID_INVITATION_MESSAGE
from reviews360.middleware import login_principal, logout_principal, require_login
from reviews360.services import account_service, invitation_service, tenant_directory
from reviews360.services.area_permission_service import admin_area_ids_for
from reviews360.utils.request_helpers import get_json_body

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')

# Keys of the signup body that are not part of the profile draft
_SIGNUP_RESERVED = {'email', 'password', 'invite', 'invite_token', 'session'}


@auth_bp.route('/signup', methods=['POST'])
def signup():
    """
    Create an account and sign it in.

    Body: email, password, optional invite token and profile fields
    (first_name, last_name, organization_name, area_id, new_area_name,
    new_area_description). Role and organization are never read from here.
    """
    data = get_json_body()
    invite_token = data.get('invite_token') or data.get('invite') or request.args.get('invite')
    profile = {k: v for k, v in data.items() if k not in _SIGNUP_RESERVED}

    principal = account_service.sign_up(
        db_session,
        data.get('email', ''),
        data.get('password', ''),
        invite_token=invite_token,
        **profile
    )
    login_principal(principal)
    return jsonify({'status': 'ok', 'principal': principal.to_dict()}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = get_json_body()
    principal = account_service.authenticate(db_session, data.get('email', ''), data.get('password', ''))
    login_principal(principal)
    logger.info(f"Principal {principal.id} logged in")
    return jsonify({'status': 'ok', 'principal': principal.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
def logout():
    logout_principal()
    return jsonify({'status': 'ok'})


@auth_bp.route('/invitation')
def invitation_details():
    """
    Validate an invite token for the signup form.

    Every invalid token gets the same answer.
    """
    invitation, reason = invitation_service.validate(db_session, request.args.get('invite', ''))
    if invitation is None:
        return jsonify({'valid': False, 'message': INVALID_INVITATION_MESSAGE})

    return jsonify({
        'valid': True,
        'email': invitation.email,
        'invitation_type': invitation.invitation_type.value,
        'organization_name': invitation.organization.name,
        'area': invitation.area.to_dict() if invitation.area else None,
        'needs_area': invitation.area_id is None,
        'expires_at': invitation.expires_at.isoformat(),
    })


@auth_bp.route('/domain')
def domain_preview():
    """Live hint for the signup form (open-domain mode only)."""
    preview = tenant_directory.preview_domain(db_session, request.args.get('email', ''))
    return jsonify({'preview': preview})


@auth_bp.route('/me')
@require_login
def me():
    principal = g.principal
    return jsonify({
        'principal': principal.to_dict(),
        'admin_area_ids': sorted(admin_area_ids_for(db_session, principal.id)),
    })
