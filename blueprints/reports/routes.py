# blueprints/reports/routes.py
from __future__ import annotations
from datetime import date
from flask import request, Response

from blueprints.auth.routes import admin_required
from blueprints.booking.errors import InvalidInput
from . import api_bp
from .services import MAX_REPORT_DAYS, occupancy_csv

def _parse_dates() -> tuple[date, date]:
    try:
        d_from = date.fromisoformat(str(request.args.get("date_from")))
        d_to   = date.fromisoformat(str(request.args.get("date_to")))
    except ValueError:
        raise InvalidInput("date_from and date_to must be YYYY-MM-DD") from None
    if d_to < d_from:
        d_from, d_to = d_to, d_from
    if (d_to - d_from).days >= MAX_REPORT_DAYS:
        raise InvalidInput(f"report range is limited to {MAX_REPORT_DAYS} days")
    return d_from, d_to

def _csv_resp(content: str, filename: str) -> Response:
    return Response(
        content,
        mimetype="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )

@api_bp.get("/admin/reports/occupancy.csv")
@admin_required
def occupancy_report():
    d_from, d_to = _parse_dates()
    csv_data = occupancy_csv(d_from, d_to)
    return _csv_resp(csv_data, f"occupancy_{d_from.isoformat()}_{d_to.isoformat()}.csv")
