"""Small helpers for reading JSON request bodies and query strings."""
from flask import request

from reviews360.exceptions import ValidationError


def get_json_body():
    """Request JSON as a dict; empty dict for a missing or non-object body."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def parse_int(value, field, required=False):
    """Coerce an id-like value to int, None when empty and optional."""
    if value is None or value == '':
        if required:
            raise ValidationError(f"{field} is required.")
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer.")


def parse_bool(value):
    if isinstance(value, bool):
        return value
    return str(value or '').strip().lower() in ('1', 'true', 'yes', 'on')
