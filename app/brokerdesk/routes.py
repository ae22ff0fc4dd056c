from flask import Blueprint, g, redirect, url_for

from app.brokerdesk.rbac import user_has_permission

bp = Blueprint("routes", __name__)

# Console tabs in display order: (endpoint, permission).
_TABS = (
    ("customers.register_get", "customers.create"),
    ("customers.customers_list", "customers.view"),
    ("transmissions.transmissions_index", "transmissions.view"),
    ("statistics.statistics_index", "statistics.view"),
    ("companies.companies_list", "companies.view"),
)


@bp.get("/")
def index():
    """Land on the first console tab the operator may open."""
    user = getattr(g, "current_user", None)
    if not user:
        return redirect(url_for("auth.login_get"))
    for endpoint, perm in _TABS:
        if user_has_permission(user, perm):
            return redirect(url_for(endpoint))
    return redirect(url_for("auth.logout"))


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """Fast liveness probe. No DB access."""
    return "ok", 200
