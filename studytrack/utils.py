# Standard library imports
from functools import wraps
from flask import session, request, jsonify, current_app
from datetime import datetime, timezone
from zoneinfo import ZoneInfo
import secrets
import uuid
import time
from dateutil import parser

# Application-specific imports
from .consts import ROLE_ADMIN
from .errors import ForbiddenError
from .extensions import db
from .models import User


def is_admin(user):
    """True for admin profiles and for the configured head-admin uid."""
    if user is None:
        return False
    admin_uid = current_app.config.get("ADMIN_UID")
    return user.role == ROLE_ADMIN or (bool(admin_uid) and user.uid == admin_uid)


def sync_admin_role(user):
    """
    Promote the configured head-admin account if its stored role is stale.

    Returns:
        bool: True if the role was changed.
    """
    admin_uid = current_app.config.get("ADMIN_UID")
    if admin_uid and user.uid == admin_uid and user.role != ROLE_ADMIN:
        user.role = ROLE_ADMIN
        db.session.commit()
        current_app.logger.info("Promoted %s to admin", user.uid)
        return True
    return False


def login_required(f):
    """
    Decorator to ensure a user is logged in and exists in the database.

    - Returns 401 JSON error if not logged in or the account is gone.
    - Passes the fetched user object as the first argument to the decorated view.

    Args:
        f (function): The view function to wrap.

    Returns:
        function: The decorated function.
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        uid = session.get("uid")
        if not uid:
            return jsonify({"message": "Unauthorized: Not logged in"}), 401

        user = User.query.filter_by(uid=uid).first()
        if not user:
            # Handle case where user is in session but not in DB
            session.pop("uid", None)
            return jsonify({"message": "Unauthorized: User not found"}), 401

        sync_admin_role(user)
        # Pass the fetched user object to the route function
        return f(user, *args, **kwargs)

    return decorated_function


def admin_required(f):
    """Like login_required, but answers 403 for non-admin users."""

    @login_required
    @wraps(f)
    def decorated_function(user, *args, **kwargs):
        if not is_admin(user):
            raise ForbiddenError("Forbidden: Admins only")
        return f(user, *args, **kwargs)

    return decorated_function


def csrf_protect(f):
    """
    Decorator to protect a route from CSRF attacks.

    - Checks for a valid CSRF token in the session and request (form or header).
    - Skips check if app is in TESTING mode.
    - Returns 403 error if token is missing or invalid.
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if current_app.config.get("TESTING"):
            return f(*args, **kwargs)

        # Only check for state-changing methods
        if request.method in ["POST", "PUT", "PATCH", "DELETE"]:
            token = session.get("csrf_token")
            if not token:
                return jsonify({"message": "CSRF token missing from session"}), 403

            # Get token from form or from header (for AJAX)
            request_token = request.form.get("csrf_token") or request.headers.get(
                "X-CSRF-Token"
            )

            if not request_token:
                return jsonify({"message": "CSRF token missing from request"}), 403

            # Use secrets.compare_digest for secure, timing-attack-resistant comparison
            if not secrets.compare_digest(token, request_token):
                return jsonify({"message": "Invalid CSRF token"}), 403

        return f(*args, **kwargs)

    return decorated_function


def make_csrf_token():
    """
    Generates and stores a CSRF token in the session if not already present.
    Skips token generation in TESTING mode.
    """
    if current_app.config.get("TESTING"):
        return
    if "csrf_token" not in session:
        session["csrf_token"] = secrets.token_hex(16)


def new_uid():
    """Opaque 28 character account identity."""
    return secrets.token_urlsafe(21)


def new_id():
    """Unique id for sessions and friend entries."""
    return uuid.uuid4().hex


def now_ms():
    return int(time.time() * 1000)


def utc_now_iso():
    return to_iso(datetime.now(timezone.utc))


def local_now(tz_name=None):
    """
    Current wall-clock time in the configured zone, as a naive datetime.

    Schedule dates are stored as local naive strings, so comparisons happen
    on naive values too.
    """
    tz_name = tz_name or current_app.config.get("TIME_ZONE", "UTC")
    return datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None)


def parse_local(value, tz_name="UTC"):
    """
    Parse a schedule datetime into a naive local datetime.

    Aware values (e.g. from an imported schedule) are converted to tz_name first.

    Args:
        value (str | datetime): ISO string or datetime.
        tz_name (str): IANA zone used for aware inputs.

    Returns:
        datetime: Naive local datetime.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            # Fallback to dateutil.parser for more lenient parsing
            dt = parser.parse(value)
    else:
        raise TypeError(f"Unsupported type for parse_local: {type(value)}")

    if dt.tzinfo is not None:
        dt = dt.astimezone(ZoneInfo(tz_name)).replace(tzinfo=None)
    return dt


def to_iso(dt: datetime) -> str:
    """
    Return an ISO string in UTC (with Z) from a datetime or None.

    Args:
        dt (datetime): The datetime object.

    Returns:
        str: ISO 8601 formatted string in UTC.
    """
    if dt is None:
        return None
    # Ensure the datetime is in UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")


def format_time_12h(dt: datetime) -> str:
    """'h:mm AM/PM' rendering used in exports."""
    hour = dt.hour % 12 or 12
    period = "PM" if dt.hour >= 12 else "AM"
    return f"{hour}:{dt.minute:02d} {period}"
