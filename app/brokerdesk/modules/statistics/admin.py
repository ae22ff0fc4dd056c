from __future__ import annotations

from datetime import datetime

from flask import Blueprint, current_app, flash, render_template
from sqlalchemy.exc import SQLAlchemyError

from app.brokerdesk.db import db_session
from app.brokerdesk.modules.statistics.service import compute_statistics, load_statistics
from app.brokerdesk.rbac import require_permission

bp = Blueprint("statistics", __name__)


@bp.get("/statistics")
@require_permission("statistics.view")
def statistics_index():
    try:
        stats = load_statistics(db_session())
    except SQLAlchemyError:
        current_app.logger.exception("Failed to load dashboard statistics")
        flash("Failed to load dashboard statistics.", "danger")
        # Empty aggregates still carry the six-month series.
        stats = compute_statistics([], [], [], datetime.utcnow())
    return render_template("admin/statistics/index.html", stats=stats)
