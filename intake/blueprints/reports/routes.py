"""
intake/blueprints/reports/routes.py

Report routes (JSON API).

Includes:
- Paginated, filtered list + dashboard summary
- Create / add item / remove item / finish / cancel
- PDF ticket and CSV exports

IMPORTANT:
- Lifecycle rules live in intake/pricing/lifecycle.py and are enforced by
  intake/services/reports.py. Routes only parse, commit and serialize.
- Every mutating route returns the full updated report.
"""

from __future__ import annotations

from flask import Blueprint, Response, current_app, jsonify, request, send_file
from flask_login import login_required

from ...audit import history
from ...extensions import db
from ...exports import detailed_csv, report_ticket_pdf, summary_csv
from ...pricing.units import UNIT_CHOICES
from ...services import reports as report_service
from ...services.reports import ReportFilters
from ...utils import json_body, page_args, paginated

reports_bp = Blueprint("reports", __name__, url_prefix="/reports")


def _report_response(report, status: int = 200):
    return jsonify(report.to_dict()), status


# ---------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------
@reports_bp.route("", methods=["GET"])
@login_required
def list_reports():
    filters = ReportFilters.from_args(request.args)
    page, page_size = page_args(current_app.config.get("REPORTS_PAGE_SIZE", 5))
    return jsonify(paginated(report_service.reports_query(filters), page, page_size, lambda r: r.to_dict()))


@reports_bp.route("/summary", methods=["GET"])
@login_required
def reports_summary():
    filters = ReportFilters.from_args(request.args)
    return jsonify(report_service.summarize(report_service.reports_query(filters).all()))


@reports_bp.route("/units", methods=["GET"])
@login_required
def weight_units():
    return jsonify([{"value": value, "label": label} for value, label in UNIT_CHOICES])


@reports_bp.route("/<int:report_id>", methods=["GET"])
@login_required
def get_report(report_id: int):
    return _report_response(report_service.get_report(report_id))


@reports_bp.route("/<int:report_id>/history", methods=["GET"])
@login_required
def report_history(report_id: int):
    report = report_service.get_report(report_id)
    return jsonify([entry.to_dict() for entry in history("Report", report.id)])


# ---------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------
@reports_bp.route("", methods=["POST"])
@login_required
def create_report():
    report = report_service.create_report(json_body())
    db.session.commit()
    return _report_response(report, 201)


@reports_bp.route("/<int:report_id>/items", methods=["POST"])
@login_required
def add_report_item(report_id: int):
    report = report_service.add_item(report_id, json_body())
    db.session.commit()
    return _report_response(report)


@reports_bp.route("/<int:report_id>/items/<int:item_id>", methods=["DELETE"])
@login_required
def remove_report_item(report_id: int, item_id: int):
    report = report_service.remove_item(report_id, item_id)
    db.session.commit()
    return _report_response(report)


@reports_bp.route("/<int:report_id>/finish", methods=["PATCH"])
@login_required
def finish_report(report_id: int):
    report = report_service.finish_report(report_id, json_body())
    db.session.commit()
    return _report_response(report)


@reports_bp.route("/<int:report_id>/cancel", methods=["PATCH"])
@login_required
def cancel_report(report_id: int):
    report = report_service.cancel_report(report_id)
    db.session.commit()
    return _report_response(report)


# ---------------------------------------------------------------------
# Exports
# ---------------------------------------------------------------------
@reports_bp.route("/<int:report_id>/pdf", methods=["GET"])
@login_required
def report_pdf(report_id: int):
    report = report_service.get_report(report_id)
    buffer = report_ticket_pdf(report, app_name=current_app.config.get("APP_NAME", "Recycling Intake"))
    return send_file(
        buffer,
        mimetype="application/pdf",
        as_attachment=True,
        download_name=f"ticket-{report.ticket_number or report.id}.pdf",
    )


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@reports_bp.route("/export/csv", methods=["GET"])
@login_required
def export_reports_csv():
    filters = ReportFilters.from_args(request.args)
    reports = report_service.reports_query(filters).all()
    return _csv_response(detailed_csv(reports), "reportes-detallado.csv")


@reports_bp.route("/export/summary", methods=["GET"])
@login_required
def export_reports_summary():
    filters = ReportFilters.from_args(request.args)
    reports = report_service.reports_query(filters).all()
    return _csv_response(summary_csv(reports), "reportes-resumen.csv")
