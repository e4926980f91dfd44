# Import standard libraries for date and time handling
from datetime import datetime, timedelta
import copy
import re

from flask import current_app

# Import utility functions and extensions from the application
from .consts import (
    ACTIVE,
    COMPLETED,
    POSTPONED,
    SESSION_STATUSES,
    REMINDER_MINUTES,
    subject_name,
)
from .errors import ValidationError, NotFoundError, ConflictError
from .extensions import db
from .models import StudySession
from .utils import new_id, utc_now_iso, parse_local

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

# -------------------------------
# Lookups and derived values
# -------------------------------

def _index_of(sessions, session_id):
    for i, doc in enumerate(sessions):
        if doc["id"] == session_id:
            return i
    raise NotFoundError("Study session not found")


def _first_completed_for(sessions, subject):
    for i, doc in enumerate(sessions):
        if doc["subject"] == subject and doc["status"] == COMPLETED:
            return i
    return -1


def active_sessions(sessions):
    """Active sessions ordered by start time."""
    return sorted(
        (doc for doc in sessions if doc["status"] == ACTIVE),
        key=lambda doc: parse_local(doc["startDate"]),
    )


def is_running(doc, now):
    """True while an active session's time window contains now."""
    start = parse_local(doc["startDate"])
    end = parse_local(doc["endDate"])
    return doc["status"] == ACTIVE and start <= now <= end


def time_remaining(doc, now):
    """
    Time left until the session ends.

    Returns:
        dict | None: {"hours", "minutes", "seconds"}, or None once the end has passed.
    """
    diff = parse_local(doc["endDate"]) - now
    total = int(diff.total_seconds())
    if total <= 0:
        return None
    return {
        "hours": total // 3600,
        "minutes": (total % 3600) // 60,
        "seconds": total % 60,
    }


def progress(doc):
    """Percentage of completed lessons, rounded."""
    lessons = doc["lessons"]
    if not lessons:
        return 0
    done = sum(1 for lesson in lessons if lesson["completed"])
    return round(done * 100 / len(lessons))


def due_reminders(sessions, now):
    """
    Active sessions starting within the next REMINDER_MINUTES minutes.

    Returns:
        list: [{"sessionId", "subject", "minutesLeft", "message"}]
    """
    window = timedelta(minutes=REMINDER_MINUTES)
    reminders = []
    for doc in sessions:
        if doc["status"] != ACTIVE:
            continue
        diff = parse_local(doc["startDate"]) - now
        if timedelta(0) < diff <= window:
            minutes_left = int(diff.total_seconds() // 60)
            reminders.append({
                "sessionId": doc["id"],
                "subject": doc["subject"],
                "minutesLeft": minutes_left,
                "message": f"Studying {subject_name(doc['subject'])} starts in "
                           f"{REMINDER_MINUTES} minutes",
            })
    return reminders


def schedule_view(sessions, now):
    """
    Tabbed view of a schedule: active (by start), completed and postponed.

    Each entry carries its progress, whether it is running and the time left.
    """
    def decorate(doc):
        running = is_running(doc, now)
        return dict(
            doc,
            progress=progress(doc),
            running=running,
            timeRemaining=time_remaining(doc, now) if running else None,
        )

    return {
        "active": [decorate(doc) for doc in active_sessions(sessions)],
        "completed": [decorate(doc) for doc in sessions if doc["status"] == COMPLETED],
        "postponed": [decorate(doc) for doc in sessions if doc["status"] == POSTPONED],
    }

# -------------------------------
# Validation and conflicts
# -------------------------------

def find_conflict(sessions, start, end, exclude_id=None):
    """
    Return the first other active session on the same day overlapping [start, end).

    Args:
        sessions (list): Current schedule.
        start (datetime): Proposed start.
        end (datetime): Proposed end.
        exclude_id (str): Session being edited, skipped in the check.

    Returns:
        dict | None: The conflicting session.
    """
    for doc in sessions:
        if doc["id"] == exclude_id or doc["status"] != ACTIVE:
            continue
        existing_start = parse_local(doc["startDate"])
        if existing_start.date() != start.date():
            continue
        # Compare on the proposed day using the existing session's clock times
        existing_end = datetime.combine(
            start.date(), parse_local(doc["endDate"]).time()
        )
        existing_start = datetime.combine(start.date(), existing_start.time())
        if start < existing_end and end > existing_start:
            return doc
    return None


def validate_session_form(payload):
    """
    Validate an add/edit payload and return its parsed parts.

    Payload: {"subject", "date" (YYYY-MM-DD), "startTime" (HH:MM),
    "endTime" (HH:MM), "lessons" ([str]), optional "status"}.

    Returns:
        tuple: (subject, start datetime, end datetime, lesson names, status or None)
    """
    if not isinstance(payload, dict):
        raise ValidationError("Please fill in all required fields")

    subject = (payload.get("subject") or "").strip()
    date = payload.get("date") or ""
    start_time = payload.get("startTime") or ""
    end_time = payload.get("endTime") or ""
    lessons = payload.get("lessons")

    if not subject or not date or not start_time or not end_time:
        raise ValidationError("Please fill in all required fields")
    if not isinstance(lessons, list) or not lessons:
        raise ValidationError("Add at least one lesson")
    names = []
    for lesson in lessons:
        name = lesson.get("name") if isinstance(lesson, dict) else lesson
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Please fill in all required fields")
        names.append(name.strip())

    if not DATE_RE.match(date) or not TIME_RE.match(start_time) or not TIME_RE.match(end_time):
        raise ValidationError("Invalid date or time format")
    try:
        start = datetime.fromisoformat(f"{date}T{start_time}")
        end = datetime.fromisoformat(f"{date}T{end_time}")
    except ValueError:
        raise ValidationError("Invalid date or time format")

    if end <= start:
        raise ValidationError("End time must be after the start time")

    status = payload.get("status")
    if status is not None and status not in SESSION_STATUSES:
        raise ValidationError(f"Unknown status: {status}")

    return subject, start, end, names, status


def _raise_conflict(subject, other):
    raise ConflictError(
        f"{subject_name(subject)} conflicts with "
        f"{subject_name(other['subject'])} at the same time"
    )

# -------------------------------
# Operations (return a new schedule)
# -------------------------------

def add_session(sessions, payload):
    """
    Append a new active session built from a form payload.

    Returns:
        tuple: (updated schedule, new session)
    """
    subject, start, end, names, _ = validate_session_form(payload)
    other = find_conflict(sessions, start, end)
    if other:
        _raise_conflict(subject, other)

    doc = {
        "id": new_id(),
        "subject": subject,
        "startDate": start.isoformat(timespec="minutes"),
        "endDate": end.isoformat(timespec="minutes"),
        "lessons": [{"name": name, "completed": False} for name in names],
        "status": ACTIVE,
        "createdAt": utc_now_iso(),
    }
    return copy.deepcopy(sessions) + [doc], doc


def update_session(sessions, session_id, payload):
    """
    Edit a session. Lessons keep the completion flag of the lesson at the same position.

    Returns:
        tuple: (updated schedule, edited session)
    """
    sessions = copy.deepcopy(sessions)
    index = _index_of(sessions, session_id)
    current = sessions[index]

    subject, start, end, names, status = validate_session_form(payload)
    other = find_conflict(sessions, start, end, exclude_id=session_id)
    if other:
        _raise_conflict(subject, other)

    old_lessons = current["lessons"]
    lessons = [
        {
            "name": name,
            "completed": old_lessons[i]["completed"] if i < len(old_lessons) else False,
        }
        for i, name in enumerate(names)
    ]
    updated = dict(
        current,
        subject=subject,
        startDate=start.isoformat(timespec="minutes"),
        endDate=end.isoformat(timespec="minutes"),
        lessons=lessons,
        status=status or current["status"],
    )
    sessions[index] = updated
    return sessions, updated


def delete_session(sessions, session_id):
    index = _index_of(sessions, session_id)
    return [copy.deepcopy(doc) for i, doc in enumerate(sessions) if i != index]


def split_session(sessions, session_id):
    """
    Replace a session by its incomplete and completed halves.

    Incomplete lessons become a new postponed session. Completed lessons join
    the first completed session of the same subject, or a new completed one.
    """
    sessions = copy.deepcopy(sessions)
    index = _index_of(sessions, session_id)
    session = sessions.pop(index)

    incomplete = [lesson for lesson in session["lessons"] if not lesson["completed"]]
    completed = [lesson for lesson in session["lessons"] if lesson["completed"]]

    if incomplete:
        sessions.append(dict(
            session,
            id=new_id(),
            lessons=[dict(lesson, completed=False) for lesson in incomplete],
            status=POSTPONED,
            createdAt=utc_now_iso(),
        ))

    if completed:
        target = _first_completed_for(sessions, session["subject"])
        if target != -1:
            sessions[target]["lessons"].extend(completed)
        else:
            sessions.append(dict(
                session,
                id=new_id(),
                lessons=completed,
                status=COMPLETED,
                createdAt=utc_now_iso(),
            ))

    return sessions


def postpone_session(sessions, session_id):
    """Manually split an active session before its end time."""
    doc = sessions[_index_of(sessions, session_id)]
    if doc["status"] != ACTIVE:
        raise ValidationError("Only active sessions can be postponed")
    return split_session(sessions, session_id)


def transfer_due_sessions(sessions, now):
    """
    Split every active session whose end time has passed.

    Returns:
        tuple: (updated schedule, ids of the sessions that were transferred)
    """
    due = [
        doc["id"]
        for doc in sessions
        if doc["status"] == ACTIVE and now >= parse_local(doc["endDate"])
    ]
    for session_id in due:
        sessions = split_session(sessions, session_id)
    return sessions, due


def mark_lesson_completed(sessions, session_id, lesson_index):
    """
    Toggle a lesson and apply the resulting state transition.

    - active: when every lesson is complete the session becomes completed.
    - postponed: a lesson that becomes complete moves to the subject's
      completed session; an emptied postponed session is removed.
    - completed: read-only.

    Returns:
        tuple: (updated schedule, outcome) where outcome is one of
        "toggled", "completed" or "moved".
    """
    sessions = copy.deepcopy(sessions)
    index = _index_of(sessions, session_id)
    session = sessions[index]

    if session["status"] == COMPLETED:
        raise ValidationError("Completed sessions cannot be changed")
    if not 0 <= lesson_index < len(session["lessons"]):
        raise NotFoundError("Lesson not found")

    lesson = session["lessons"][lesson_index]
    lesson["completed"] = not lesson["completed"]

    if session["status"] == POSTPONED and lesson["completed"]:
        target = _first_completed_for(sessions, session["subject"])
        if target == -1:
            sessions.append({
                "id": new_id(),
                "subject": session["subject"],
                "startDate": session["startDate"],
                "endDate": session["endDate"],
                "lessons": [lesson],
                "status": COMPLETED,
                "createdAt": utc_now_iso(),
            })
        else:
            sessions[target]["lessons"].append(lesson)

        del session["lessons"][lesson_index]
        if not session["lessons"]:
            del sessions[index]
        return sessions, "moved"

    if session["status"] == ACTIVE and all(l["completed"] for l in session["lessons"]):
        session["status"] = COMPLETED
        return sessions, "completed"

    return sessions, "toggled"

# -------------------------------
# Persistence (whole-document read/write)
# -------------------------------

def load_schedule(user):
    """The user's schedule as a list of session documents."""
    rows = StudySession.query.filter_by(user_id=user.id).all()
    return [row.to_doc() for row in rows]


def save_schedule(user, sessions):
    """
    Overwrite the user's whole schedule with the given documents.

    The previous rows are deleted and the new ones inserted in one commit,
    so the last writer wins.
    """
    for row in StudySession.query.filter_by(user_id=user.id).all():
        db.session.delete(row)
    db.session.flush()
    for doc in sessions:
        db.session.add(StudySession.from_doc(user.id, doc))
    db.session.commit()


def refresh_schedule(user, now):
    """
    Load a schedule and apply automatic transfers that are due.

    Returns:
        list: The current schedule.
    """
    sessions = load_schedule(user)
    sessions, transferred = transfer_due_sessions(sessions, now)
    if transferred:
        save_schedule(user, sessions)
        current_app.logger.info(
            "Transferred %d ended session(s) for %s", len(transferred), user.uid
        )
    return sessions
