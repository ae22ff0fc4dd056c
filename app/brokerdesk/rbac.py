from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g, redirect, request, url_for

from app.brokerdesk.models import User

# Permission catalogue: key -> display name. Seeded by scripts/init_db.py.
PERMISSIONS: dict[str, str] = {
    "customers.view": "Customers: view",
    "customers.create": "Customers: register",
    "customers.delete": "Customers: delete",
    "customers.export": "Customers: export",
    "companies.view": "Insurance companies: view",
    "companies.edit": "Insurance companies: add/edit/delete",
    "transmissions.view": "Transmissions: view history",
    "transmissions.send": "Transmissions: send",
    "statistics.view": "Statistics: view",
}


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active:
        return False
    return any(perm.key == permission_key for role in user.roles for perm in role.permissions)


def current_user() -> User:
    """The logged-in operator; only valid inside a @require_permission view."""
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            # Unauthenticated -> login page.
            if not user or not user.is_active:
                nxt = request.full_path or request.path
                if nxt.endswith("?"):
                    nxt = nxt[:-1]
                return redirect(url_for("auth.login_get", next=nxt))
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator
