"""
Grade Blueprint — committee grading.

Endpoints:
  GET    /api/v1/grades/theses/<id>          — Grades + statistics
  POST   /api/v1/grades/theses/<id>          — Submit own grade (accepted committee member)
  PUT    /api/v1/grades/<id>                 — Update own grade
  DELETE /api/v1/grades/<id>                 — Delete own grade
  GET    /api/v1/grades/instructor/summary   — Theses awaiting my grade, my statistics
  GET    /api/v1/grades/statistics           — Portal-wide grading overview (secretary)
"""

from flask import Blueprint, jsonify, request

from thesis_portal.auth import get_current_user, require_auth, require_role
from thesis_portal.models.user import ROLE_INSTRUCTOR, ROLE_SECRETARY
from thesis_portal.services import grade_service

grades_bp = Blueprint("grades_bp", __name__, url_prefix="/api/v1/grades")


@grades_bp.route("/theses/<int:thesis_id>", methods=["GET"])
@require_auth
def list_grades(thesis_id):
    grades, statistics = grade_service.list_thesis_grades(get_current_user(), thesis_id)
    return jsonify({"grades": grades, "statistics": statistics}), 200


@grades_bp.route("/theses/<int:thesis_id>", methods=["POST"])
@require_role(ROLE_INSTRUCTOR)
def submit_grade(thesis_id):
    """
    Body: { "grade_numeric": 8.5, "comments"?: "..." }
    """
    data = request.get_json(silent=True) or {}
    grade = grade_service.submit_grade(get_current_user(), thesis_id, data)
    return jsonify({"message": "Grade submitted successfully", "grade": grade.to_dict()}), 201


@grades_bp.route("/<int:grade_id>", methods=["PUT"])
@require_role(ROLE_INSTRUCTOR, ROLE_SECRETARY)
def update_grade(grade_id):
    data = request.get_json(silent=True) or {}
    grade = grade_service.update_grade(get_current_user(), grade_id, data)
    return jsonify({"message": "Grade updated successfully", "grade": grade.to_dict()}), 200


@grades_bp.route("/<int:grade_id>", methods=["DELETE"])
@require_role(ROLE_INSTRUCTOR, ROLE_SECRETARY)
def delete_grade(grade_id):
    grade_service.delete_grade(get_current_user(), grade_id)
    return jsonify({"message": "Grade deleted successfully"}), 200


@grades_bp.route("/instructor/summary", methods=["GET"])
@require_role(ROLE_INSTRUCTOR)
def instructor_summary():
    return jsonify(grade_service.instructor_summary(get_current_user())), 200


@grades_bp.route("/statistics", methods=["GET"])
@require_role(ROLE_SECRETARY)
def grading_statistics():
    return jsonify(grade_service.grading_statistics()), 200
