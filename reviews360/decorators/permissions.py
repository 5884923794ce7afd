"""
Permission decorators for role-based access control.

Coarse gates in front of views. The fine-grained, per-resource decision is
always made by permission_service inside the service call.
"""

from functools import wraps
from flask import g, jsonify

from reviews360.roles import Action, Role, to_role
from reviews360.services.permission_service import Resource, is_platform_admin, log_denial


def require_role(*allowed_roles):
    """
    Decorator to restrict access to specific roles.

    Usage:
        @require_role(Role.CLIENT_ADMIN)
        @require_role(Role.CLIENT_ADMIN, Role.AREA_ADMIN)

    Super admins always pass.
    """
    allowed = {to_role(r) for r in allowed_roles}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            principal = g.get('principal')
            if principal is None:
                return jsonify({'status': 'error', 'message': 'Authentication required.'}), 401

            role = to_role(principal.role)
            if role is not Role.SUPER_ADMIN and role not in allowed:
                log_denial(
                    principal, Action.MUTATE,
                    Resource(organization_id=principal.organization_id, kind=f.__name__),
                    reason=f"role {role.value} not in {sorted(r.value for r in allowed)}"
                )
                return jsonify({'status': 'error', 'message': 'You do not have permission to perform this action.'}), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def platform_admin_only(f):
    """
    Shortcut decorator for super admin routes.

    Usage:
        @platform_admin_only
        def create_organization():
            ...
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        principal = g.get('principal')
        if principal is None:
            return jsonify({'status': 'error', 'message': 'Authentication required.'}), 401
        if not is_platform_admin(principal):
            log_denial(principal, Action.MUTATE, Resource(organization_id=None, kind=f.__name__), reason='platform route')
            return jsonify({'status': 'error', 'message': 'You do not have permission to perform this action.'}), 403
        return f(*args, **kwargs)
    return decorated_function


def admins_only(f):
    """Shortcut decorator for client admin or area admin access."""
    return require_role(Role.CLIENT_ADMIN, Role.AREA_ADMIN)(f)
