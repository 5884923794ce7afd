"""
Audit logging service for tracking security-relevant actions.
"""
from flask import request, has_request_context
from reviews360.models.audit_log import AuditLog, AuditAction
from reviews360.utils.settings import utcnow
import json
import logging

logger = logging.getLogger(__name__)


def log_action(
    session,
    action: AuditAction,
    actor=None,
    organization_id: int = None,
    resource_type: str = None,
    resource_id: int = None,
    details: dict = None
):
    """
    Add an audit entry to the session.

    The entry commits (or rolls back) together with the change it describes.

    Args:
        session: Database session
        action: AuditAction enum value
        actor: Principal performing the action (None for anonymous signup)
        organization_id: Tenant the action belongs to; defaults to the actor's
        resource_type: Type of resource affected (e.g., 'invitation')
        resource_id: ID of the affected resource
        details: Dict with additional details (will be JSON encoded)
    """
    if organization_id is None and actor is not None:
        organization_id = actor.organization_id

    ip_address = None
    user_agent = None
    if has_request_context():
        ip_address = request.headers.get('X-Forwarded-For', request.remote_addr)
        user_agent = request.headers.get('User-Agent', '')[:255]

    details_json = json.dumps(details, default=str) if details else None

    audit_entry = AuditLog(
        organization_id=organization_id,
        principal_id=actor.id if actor is not None else None,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details_json,
        ip_address=ip_address,
        user_agent=user_agent,
        created_at=utcnow()
    )
    session.add(audit_entry)
    # Note: Caller is responsible for committing the session

    logger.info(
        f"Audit: {action.value} by principal {actor.id if actor is not None else '-'} "
        f"on {resource_type} {resource_id}"
    )
    return audit_entry


def get_audit_logs(
    session,
    organization_id: int,
    limit: int = 100,
    offset: int = 0,
    action_filter: AuditAction = None,
    principal_id_filter: int = None
):
    """
    Retrieve audit logs for an organization with optional filters, newest first.
    """
    query = session.query(AuditLog).filter(
        AuditLog.organization_id == organization_id
    )

    if action_filter:
        query = query.filter(AuditLog.action == action_filter)

    if principal_id_filter:
        query = query.filter(AuditLog.principal_id == principal_id_filter)

    query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    return query.limit(limit).offset(offset).all()
