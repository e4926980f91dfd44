# Import Flask modules for routing, request handling, and responses
from flask import Blueprint, request, jsonify, current_app, Response

# Import application logic and utilities
from .. import schedule as lifecycle
from ..consts import subject_name
from ..export import schedule_pdf, schedule_ics
from ..sharing import (
    build_share_url,
    decode_schedule,
    extract_share_data,
    import_shared_schedule,
)
from ..utils import csrf_protect, login_required, local_now

# Define the blueprint for study schedule API routes
schedule_bp = Blueprint("schedule", __name__)


def _current_schedule(user):
    """The user's schedule with due automatic transfers already applied."""
    return lifecycle.refresh_schedule(user, local_now())


@schedule_bp.route("/", methods=["GET"])
@login_required
def get_schedule(user):
    """
    Fetch the schedule grouped into active, completed and postponed sessions.

    Ended active sessions are transferred before the response is built, and
    sessions starting within a few minutes are listed under "reminders".

    Returns:
        JSON: {"active", "completed", "postponed", "reminders"}.
    """
    now = local_now()
    sessions = lifecycle.refresh_schedule(user, now)
    view = lifecycle.schedule_view(sessions, now)
    view["reminders"] = lifecycle.due_reminders(sessions, now)
    return jsonify(view), 200


@schedule_bp.route("/", methods=["POST"])
@csrf_protect
@login_required
def create_session(user):
    """
    Add a study session.

    Payload: subject, date (YYYY-MM-DD), startTime, endTime (HH:MM), lessons.

    Returns:
        JSON: The new session and status code 201, 400 on invalid input,
        409 when it overlaps another active session.
    """
    sessions = _current_schedule(user)
    sessions, doc = lifecycle.add_session(sessions, request.get_json(silent=True))
    lifecycle.save_schedule(user, sessions)
    return jsonify({
        "message": f"Added a {subject_name(doc['subject'])} study session",
        "session": doc,
    }), 201


@schedule_bp.route("/<session_id>", methods=["PUT"])
@csrf_protect
@login_required
def update_session(user, session_id):
    """Edit a session's subject, date, times, lessons or status."""
    sessions = _current_schedule(user)
    sessions, doc = lifecycle.update_session(
        sessions, session_id, request.get_json(silent=True)
    )
    lifecycle.save_schedule(user, sessions)
    return jsonify({"message": "Study session updated", "session": doc}), 200


@schedule_bp.route("/<session_id>", methods=["DELETE"])
@csrf_protect
@login_required
def delete_session(user, session_id):
    sessions = lifecycle.delete_session(_current_schedule(user), session_id)
    lifecycle.save_schedule(user, sessions)
    return jsonify({"message": "Study session deleted"}), 200


@schedule_bp.route("/<session_id>/lessons/<int:lesson_index>", methods=["POST"])
@csrf_protect
@login_required
def toggle_lesson(user, session_id, lesson_index):
    """
    Toggle a lesson's completion.

    Returns:
        JSON: {"outcome"} where outcome is "toggled", "completed" (every
        lesson of an active session done) or "moved" (a postponed lesson
        went to the subject's completed session).
    """
    sessions = _current_schedule(user)
    sessions, outcome = lifecycle.mark_lesson_completed(sessions, session_id, lesson_index)
    lifecycle.save_schedule(user, sessions)
    return jsonify({"message": "Lesson updated", "outcome": outcome}), 200


@schedule_bp.route("/<session_id>/postpone", methods=["POST"])
@csrf_protect
@login_required
def postpone_session(user, session_id):
    """Move completed lessons to achievements and the rest to postponed."""
    sessions = lifecycle.postpone_session(_current_schedule(user), session_id)
    lifecycle.save_schedule(user, sessions)
    return jsonify({"message": "Study session postponed"}), 200


@schedule_bp.route("/share", methods=["GET"])
@login_required
def share_schedule(user):
    """Build a share link carrying the active sessions."""
    url = build_share_url(
        current_app.config["SHARE_BASE_URL"], _current_schedule(user)
    )
    return jsonify({"url": url}), 200


@schedule_bp.route("/import", methods=["GET"])
@login_required
def preview_import(user):
    """Decode share data (?data=... or a full link) without saving it."""
    payload = decode_schedule(extract_share_data(request.args.get("data", "")))
    return jsonify(payload), 200


@schedule_bp.route("/import", methods=["POST"])
@csrf_protect
@login_required
def import_schedule(user):
    """
    Append the sessions of a share link to the schedule as active sessions.

    Payload: {"data": <encoded data or share link>}.
    """
    data = (request.get_json(silent=True) or {}).get("data", "")
    payload = decode_schedule(extract_share_data(data))
    sessions, imported = import_shared_schedule(
        _current_schedule(user), payload, current_app.config["TIME_ZONE"]
    )
    lifecycle.save_schedule(user, sessions)
    current_app.logger.info("Imported %d session(s) for %s", len(imported), user.uid)
    return jsonify({
        "message": f"Added {len(imported)} sessions to your schedule",
        "sessions": imported,
    }), 201


@schedule_bp.route("/export.pdf", methods=["GET"])
@login_required
def export_pdf(user):
    """Download the active sessions as a PDF table."""
    content = schedule_pdf(
        _current_schedule(user), current_app.config.get("PDF_FONT_PATH")
    )
    filename = f"study_schedule_{local_now().date().isoformat()}.pdf"
    return Response(
        content,
        mimetype="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@schedule_bp.route("/export.ics", methods=["GET"])
@login_required
def export_ics(user):
    """Download the active sessions as an .ics file."""
    return Response(
        schedule_ics(_current_schedule(user)),
        mimetype="text/calendar",
        headers={"Content-Disposition": "attachment; filename=study_schedule.ics"},
    )
