"""Access to application settings from service code."""
from datetime import datetime, timezone

from flask import current_app, has_app_context

SIGNUP_MODE_OPEN_DOMAIN = 'open-domain'
SIGNUP_MODE_INVITE_ONLY = 'invite-only'
SIGNUP_MODES = (SIGNUP_MODE_OPEN_DOMAIN, SIGNUP_MODE_INVITE_ONLY)

# Used when services run outside a Flask application context
DEFAULTS = {
    'INVITATION_EXPIRY_DAYS': 7,
    'SIGNUP_MODE': SIGNUP_MODE_INVITE_ONLY,
    'TOKEN_BYTE_LENGTH': 24,
    'APP_ORIGIN': 'http://localhost:5000',
    'CLIENT_ADMIN_CAN_ASSIGN_CLIENT_ADMIN': True,
    'AREA_ADMIN_CAN_INVITE_AREA_ADMIN': False,
    'MIN_PASSWORD_LENGTH': 8,
}


def get_setting(name):
    """Return a config value from the current app, or its default."""
    if has_app_context():
        return current_app.config.get(name, DEFAULTS.get(name))
    return DEFAULTS.get(name)


def get_signup_mode():
    mode = get_setting('SIGNUP_MODE')
    if mode not in SIGNUP_MODES:
        raise ValueError(f"Unknown SIGNUP_MODE {mode!r}; expected one of {SIGNUP_MODES}")
    return mode


def utcnow():
    """Naive UTC timestamp, matching how the tables store datetimes."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
