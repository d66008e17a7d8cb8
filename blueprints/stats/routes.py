from __future__ import annotations

from flask import jsonify, request
from flask_login import current_user

from blueprints.auth.routes import member_required
from . import api_bp
from .services import booking_stats

DEFAULT_WINDOW_DAYS = 30

@api_bp.get("/stats")
@member_required
def api_stats():
    days = request.args.get("days", DEFAULT_WINDOW_DAYS)
    stats = booking_stats(current_user.id, days)
    return jsonify({"ok": True, "stats": stats.to_dict()})
