from flask import Blueprint, session, jsonify
from datetime import timedelta

from ..models import User, Exam
from ..schedule import refresh_schedule, active_sessions, due_reminders
from ..utils import local_now, parse_local, sync_admin_role

main_bp = Blueprint("main", __name__)


@main_bp.route("/")
def index():
    """
    Home route: a small dashboard for logged-in users.

    - Today's active study sessions and any reminders.
    - Exams within the next 21 days.
    - Anonymous visitors just get {"logged_in": false}.

    Returns:
        JSON: Dashboard data.
    """
    uid = session.get("uid")
    user = User.query.filter_by(uid=uid).first() if uid else None
    if not user:
        session.pop("uid", None)
        return jsonify({"logged_in": False}), 200
    sync_admin_role(user)

    now = local_now()
    today = now.date()
    sessions = refresh_schedule(user, now)
    todays_sessions = [
        doc for doc in active_sessions(sessions)
        if parse_local(doc["startDate"]).date() == today
    ]

    # Get upcoming exams (within next 21 days)
    future_date = today + timedelta(days=21)
    upcoming_exams = Exam.query.filter(
        Exam.date >= today.isoformat(),
        Exam.date <= future_date.isoformat(),
    ).order_by(Exam.date).all()

    return jsonify({
        "logged_in": True,
        "user": user.profile(),
        "todays_sessions": todays_sessions,
        "reminders": due_reminders(sessions, now),
        "upcoming_exams": [exam.to_dict() for exam in upcoming_exams],
    }), 200
