from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g, redirect, request, url_for

from app.opsportal.constants import PERM_USER_LOGIN, PERM_WORKBENCH_ACCESS
from app.opsportal.models import User

# Path-level access. First matching prefix wins; None means open.
ROUTE_ACCESS: tuple[tuple[str, str | None], ...] = (
    ("/health", None),
    ("/static/", None),
    ("/auth/", None),
    ("/api/internal/", None),
    ("/api/", PERM_WORKBENCH_ACCESS),
)


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active:
        return False
    for role in user.roles:
        for perm in role.permissions:
            if perm.key == permission_key:
                return True
    return False


def user_has_any_permission(user: User | None, *permission_keys: str) -> bool:
    return any(user_has_permission(user, k) for k in permission_keys)


def required_permission_for_path(path: str) -> str | None:
    """Permission a path needs before any view runs (None = public)."""
    if path == "/":
        return None
    for prefix, key in ROUTE_ACCESS:
        if path.startswith(prefix):
            return key
    return PERM_USER_LOGIN


def _login_redirect():
    nxt = request.full_path or request.path
    # Avoid trailing '?' from full_path when there is no query string.
    if nxt.endswith("?"):
        nxt = nxt[:-1]
    return redirect(url_for("auth.login_get", next=nxt))


def require_any_permission(*permission_keys: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            # Unauthenticated → redirect to login.
            if not user or not user.is_active:
                return _login_redirect()
            # Authenticated but unauthorized → 403
            if not user_has_any_permission(user, *permission_keys):
                g.missing_permission = " | ".join(permission_keys)
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    return require_any_permission(permission_key)
