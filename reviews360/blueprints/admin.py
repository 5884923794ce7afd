"""
Admin blueprint.
Organization and email-domain management for super admins (client admins may
manage their own organization's domains), plus the audit trail.
"""

from flask import Blueprint, request, jsonify, g

from reviews360.database import db_session, transaction
from reviews360.decorators.permissions import platform_admin_only
from reviews360.exceptions import ValidationError
from reviews360.middleware import require_login
from reviews360.models import AuditAction
from reviews360.roles import Action
from reviews360.services import tenant_directory
from reviews360.services.audit_service import get_audit_logs
from reviews360.services.permission_service import Resource, require
from reviews360.utils.request_helpers import get_json_body, parse_int


admin_bp = Blueprint('admin', __name__, url_prefix='/admin')


@admin_bp.route('/organizations', methods=['POST'])
@require_login
@platform_admin_only
def create_organization():
    data = get_json_body()
    domains = data.get('domains') or []
    if isinstance(domains, str):
        domains = [d for d in domains.replace(',', ' ').split() if d]

    with transaction(db_session):
        organization = tenant_directory.create_organization(
            db_session, g.principal, data.get('name', ''), domains, slug=data.get('slug')
        )
    return jsonify({'status': 'ok', 'organization': organization.to_dict()}), 201


@admin_bp.route('/organizations/<int:organization_id>/domains')
@require_login
def list_domains(organization_id):
    domains = tenant_directory.list_domains(db_session, g.principal, organization_id)
    return jsonify({'domains': [d.to_dict() for d in domains]})


@admin_bp.route('/organizations/<int:organization_id>/domains', methods=['POST'])
@require_login
def add_domain(organization_id):
    data = get_json_body()
    with transaction(db_session):
        email_domain = tenant_directory.add_email_domain(
            db_session, g.principal, organization_id, data.get('domain', '')
        )
    return jsonify({'status': 'ok', 'domain': email_domain.to_dict()}), 201


@admin_bp.route('/domains/<int:domain_id>', methods=['DELETE'])
@require_login
def remove_domain(domain_id):
    with transaction(db_session):
        tenant_directory.remove_email_domain(db_session, g.principal, domain_id)
    return jsonify({'status': 'ok'})


@admin_bp.route('/organizations/<int:organization_id>/audit-logs')
@require_login
def audit_logs(organization_id):
    """Audit trail of an organization, newest first (admins of the organization)."""
    tenant_directory.get_organization(db_session, organization_id)
    require(db_session, g.principal, Action.READ, Resource.for_organization(organization_id, kind='audit_log'))

    action = request.args.get('action')
    if action:
        try:
            action = AuditAction(action)
        except ValueError:
            raise ValidationError(f"Unknown audit action: {action}")

    logs = get_audit_logs(
        db_session,
        organization_id,
        limit=min(parse_int(request.args.get('limit'), 'limit') or 100, 500),
        offset=parse_int(request.args.get('offset'), 'offset') or 0,
        action_filter=action or None,
        principal_id_filter=parse_int(request.args.get('principal_id'), 'principal_id')
    )
    return jsonify({'audit_logs': [entry.to_dict() for entry in logs]})
