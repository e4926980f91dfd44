# Import Flask modules for routing, request handling, and responses
from flask import Blueprint, request, jsonify, current_app, Response
from datetime import date, timedelta

# Import application models and utilities
from ..extensions import db
from ..models import Exam
from ..export import exams_pdf
from ..utils import login_required, admin_required, csrf_protect, local_now
from ..errors import ValidationError, NotFoundError

# Define the blueprint for exam timetable routes
exams_bp = Blueprint("exams", __name__)


def group_by_week(exams):
    """
    Group date-sorted exams by ISO week.

    Returns:
        list: [{"year", "week", "start" (Monday), "exams": [...]}]
    """
    weeks = []
    for exam in exams:
        day = date.fromisoformat(exam["date"])
        year, week, _ = day.isocalendar()
        if not weeks or (weeks[-1]["year"], weeks[-1]["week"]) != (year, week):
            monday = day - timedelta(days=day.weekday())
            weeks.append({"year": year, "week": week, "start": monday.isoformat(), "exams": []})
        weeks[-1]["exams"].append(exam)
    return weeks


def _sorted_exams():
    return [exam.to_dict() for exam in Exam.query.order_by(Exam.date, Exam.id).all()]


@exams_bp.route("/", methods=["GET"])
@login_required
def get_exams(user):
    """
    Fetch the exam timetable.

    Returns:
        JSON: {"exams": [...sorted by date], "weeks": [...grouped by ISO week]}.
    """
    exams = _sorted_exams()
    return jsonify({"exams": exams, "weeks": group_by_week(exams)}), 200


@exams_bp.route("/", methods=["POST"])
@csrf_protect
@admin_required
def create_exam(user):
    """
    Add an exam (admins only).

    Payload: subject, date (YYYY-MM-DD), topics ([str]), optional day.
    The day defaults to the weekday name of the date.
    """
    data = request.get_json(silent=True) or {}
    subject = (data.get("subject") or "").strip()
    if not subject or not data.get("date"):
        raise ValidationError("Subject and date are required")
    try:
        exam_date = date.fromisoformat(data["date"])
    except (TypeError, ValueError):
        raise ValidationError("Invalid date format")

    topics = data.get("topics") or []
    if not isinstance(topics, list):
        raise ValidationError("Topics must be a list")
    topics = [str(topic).strip() for topic in topics if str(topic).strip()]

    exam = Exam(
        subject=subject,
        day=(data.get("day") or "").strip() or exam_date.strftime("%A"),
        date=exam_date.isoformat(),
        topics=topics,
    )
    db.session.add(exam)
    db.session.commit()
    current_app.logger.info("Exam %s on %s added by %s", subject, exam.date, user.uid)
    return jsonify({"message": "Exam added", "exam": exam.to_dict()}), 201


@exams_bp.route("/<int:exam_id>", methods=["DELETE"])
@csrf_protect
@admin_required
def delete_exam(user, exam_id):
    """Delete an exam (admins only)."""
    exam = db.session.get(Exam, exam_id)
    if not exam:
        raise NotFoundError("Exam not found")
    db.session.delete(exam)
    db.session.commit()
    return jsonify({"message": "Exam deleted"}), 200


@exams_bp.route("/export.pdf", methods=["GET"])
@login_required
def export_pdf(user):
    """Download the exam timetable as a PDF table."""
    content = exams_pdf(_sorted_exams(), current_app.config.get("PDF_FONT_PATH"))
    filename = f"exam_schedule_{local_now().date().isoformat()}.pdf"
    return Response(
        content,
        mimetype="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
