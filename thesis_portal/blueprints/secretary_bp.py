"""
Secretary Blueprint — exports and administrative reports.

Endpoints:
  GET /api/v1/secretary/export/theses         — ?format=json|csv&state=&supervisor_id=
  GET /api/v1/secretary/reports/comprehensive — State counts, supervisors, grading
  GET /api/v1/secretary/system/health         — Counts per role/state and DB latency
"""

from flask import Blueprint, Response, jsonify, request

from thesis_portal.auth import require_role
from thesis_portal.core.exceptions import ValidationError
from thesis_portal.models.user import ROLE_SECRETARY
from thesis_portal.services import reporting_service
from thesis_portal.utils.helpers import utcnow

secretary_bp = Blueprint("secretary_bp", __name__, url_prefix="/api/v1/secretary")


@secretary_bp.route("/export/theses", methods=["GET"])
@require_role(ROLE_SECRETARY)
def export_theses():
    fmt = (request.args.get("format") or "json").lower()
    if fmt not in ("json", "csv"):
        raise ValidationError("format must be json or csv", details={"format": "invalid"})

    rows = reporting_service.export_theses(
        state=request.args.get("state") or None,
        supervisor_id=request.args.get("supervisor_id", type=int),
    )
    if fmt == "csv":
        filename = f"theses_export_{utcnow():%Y%m%d_%H%M%S}.csv"
        return Response(
            reporting_service.theses_csv(rows),
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )
    return jsonify({"theses": rows, "total": len(rows)}), 200


@secretary_bp.route("/reports/comprehensive", methods=["GET"])
@require_role(ROLE_SECRETARY)
def comprehensive_report():
    return jsonify(reporting_service.comprehensive_report()), 200


@secretary_bp.route("/system/health", methods=["GET"])
@require_role(ROLE_SECRETARY)
def system_health():
    return jsonify(reporting_service.system_health()), 200
