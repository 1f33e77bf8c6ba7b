import secrets

from flask import Request, session

CSRF_FIELD = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"


def ensure_csrf_token() -> str:
    """Return the session's CSRF token, minting one on first use."""
    token = session.get(CSRF_FIELD)
    if not token:
        token = secrets.token_urlsafe(32)
        session[CSRF_FIELD] = token
    return token


def rotate_csrf_token() -> str:
    """Issue a fresh token (called after login so a pre-auth token can't be replayed)."""
    token = secrets.token_urlsafe(32)
    session[CSRF_FIELD] = token
    return token


def validate_csrf(req: Request) -> bool:
    expected = session.get(CSRF_FIELD)
    if not expected:
        return False
    token = req.headers.get(CSRF_HEADER) or req.form.get(CSRF_FIELD)
    if not token and req.is_json:
        body = req.get_json(silent=True) or {}
        if isinstance(body, dict):
            token = body.get(CSRF_FIELD)
    return bool(token) and secrets.compare_digest(str(token), str(expected))
