# Overview: Request decorators for API routes.

import hmac
from functools import wraps

from flask import current_app, request


def api_key_ok() -> bool:
    """True when no key is configured, or the request's apikey header matches it."""
    expected = current_app.config.get("SHOECLEAN_API_KEY")
    if not expected:
        return True
    supplied = request.headers.get("apikey") or ""
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


def require_api_key(f):
    """
    Gate a route behind the shared dashboard API key.

    Returns 401 when SHOECLEAN_API_KEY is set and the "apikey" header is
    missing or wrong. Without a configured key every request passes.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not api_key_ok():
            return {"error": "Invalid or missing API key", "code": "unauthorized"}, 401
        return f(*args, **kwargs)

    return decorated_function
