"""Middleware for authentication and organization context."""
from functools import wraps
from flask import session, g, jsonify
import logging

from reviews360.database import get_session
from reviews360.models import Principal

logger = logging.getLogger(__name__)


def load_principal():
    """
    Load the signed-in principal into g (Flask's per-request global).

    Sets g.principal and g.organization_id; both stay None for anonymous
    requests or stale sessions.
    """
    g.principal = None
    g.organization_id = None

    principal_id = session.get('principal_id')
    if not principal_id:
        return

    principal = get_session().get(Principal, principal_id)
    if principal is None:
        # Deleted since the cookie was issued
        logger.info(f"Session refers to missing principal {principal_id}, clearing it")
        session.clear()
        return

    g.principal = principal
    g.organization_id = principal.organization_id


def login_principal(principal):
    """Start a fresh session for principal."""
    session.clear()
    session['principal_id'] = principal.id
    session.permanent = True
    g.principal = principal
    g.organization_id = principal.organization_id


def logout_principal():
    session.clear()
    g.principal = None
    g.organization_id = None


def require_login(f):
    """
    Decorator: Require a signed-in principal.

    Returns a 401 JSON error for anonymous requests.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('principal') is None:
            return jsonify({'status': 'error', 'message': 'Authentication required.'}), 401
        return f(*args, **kwargs)
    return decorated_function
