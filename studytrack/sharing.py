"""
Share links for schedules.

A share link carries the active part of a schedule in its ``import`` query
parameter: the JSON document, UTF-8 encoded, then base64 encoded. Links made
with the standard alphabet and with the URL-safe one are both accepted.
"""

import base64
import binascii
import copy
import json
from urllib.parse import urlencode, urlsplit, parse_qs

from .consts import ACTIVE
from .errors import ValidationError
from .schedule import active_sessions
from .utils import new_id, utc_now_iso, parse_local


def encode_schedule(payload):
    raw = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")


def _check_shared_session(session):
    """Apply the add-form rules to one shared session."""
    if not isinstance(session, dict) or not all(
        key in session for key in ("subject", "startDate", "endDate", "lessons")
    ):
        raise ValidationError("The share link is invalid or damaged")
    if not isinstance(session["subject"], str) or not session["subject"].strip():
        raise ValidationError("The share link is invalid or damaged")

    lessons = session["lessons"]
    if not isinstance(lessons, list) or not all(
        isinstance(lesson, dict) and isinstance(lesson.get("name"), str)
        for lesson in lessons
    ):
        raise ValidationError("The share link is invalid or damaged")
    if not lessons:
        raise ValidationError("Add at least one lesson")
    if any(not lesson["name"].strip() for lesson in lessons):
        raise ValidationError("Please fill in all required fields")

    try:
        start = parse_local(session["startDate"])
        end = parse_local(session["endDate"])
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("The share link contains invalid dates")
    if end <= start:
        raise ValidationError("End time must be after the start time")
    if start.date() != end.date():
        raise ValidationError("A session must start and end on the same day")


def decode_schedule(data):
    """
    Decode share data back into its JSON document.

    Every shared session must pass the same rules as a session added by hand.

    Raises:
        ValidationError: When the data is not a valid encoded schedule.
    """
    if not data:
        raise ValidationError("No schedule data provided")
    text = data.strip().replace(" ", "+")
    text = text.replace("-", "+").replace("_", "/")
    text += "=" * (-len(text) % 4)
    try:
        raw = base64.b64decode(text, validate=True)
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        raise ValidationError("The share link is invalid or damaged")

    if not isinstance(payload, dict) or not isinstance(payload.get("sessions"), list):
        raise ValidationError("The share link is invalid or damaged")
    for session in payload["sessions"]:
        _check_shared_session(session)
    return payload


def shareable_schedule(sessions):
    """
    The share document: active sessions with every lesson reset to not completed.

    Raises:
        ValidationError: When there are no active sessions to share.
    """
    active = active_sessions(sessions)
    if not active:
        raise ValidationError("There are no active sessions to share")
    return {
        "sessions": [
            {
                "subject": doc["subject"],
                "startDate": doc["startDate"],
                "endDate": doc["endDate"],
                "lessons": [
                    {"name": lesson["name"], "completed": False}
                    for lesson in doc["lessons"]
                ],
            }
            for doc in active
        ],
        "createdAt": utc_now_iso(),
    }


def build_share_url(base_url, sessions):
    encoded = encode_schedule(shareable_schedule(sessions))
    return f"{base_url.rstrip('/')}/study-schedule?{urlencode({'import': encoded})}"


def extract_share_data(value):
    """Accept either the raw encoded data or a full share URL."""
    if value and "import=" in value:
        params = parse_qs(urlsplit(value).query)
        if params.get("import"):
            return params["import"][0]
    return value


def import_shared_schedule(sessions, payload, tz_name="UTC"):
    """
    Append the shared sessions as new active sessions.

    Returns:
        tuple: (updated schedule, imported sessions)
    """
    imported = []
    for shared in payload["sessions"]:
        _check_shared_session(shared)
        imported.append({
            "id": new_id(),
            "subject": shared["subject"].strip(),
            "startDate": parse_local(shared["startDate"], tz_name).isoformat(timespec="minutes"),
            "endDate": parse_local(shared["endDate"], tz_name).isoformat(timespec="minutes"),
            "lessons": [
                {"name": lesson["name"].strip(), "completed": bool(lesson.get("completed"))}
                for lesson in shared["lessons"]
            ],
            "status": ACTIVE,
            "createdAt": utc_now_iso(),
        })
    return copy.deepcopy(sessions) + imported, imported
