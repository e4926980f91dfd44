# Import Flask and related modules for routing, sessions, and JSON responses
from flask import Blueprint, request, session, current_app, jsonify, url_for
# Import extensions for database and password hashing
from ..extensions import db, bcrypt
# Import models for users and friends list cleanup
from ..models import User, Friend
# Import utility decorators for CSRF protection and login checks
from ..utils import (
    csrf_protect,
    login_required,
    admin_required,
    is_admin,
    new_uid,
    utc_now_iso,
    make_csrf_token,
)
from ..consts import FROM_EMAIL, ROLE_ADMIN, ROLE_USER, VERIFY_TOKEN_MAX_AGE, RESET_TOKEN_MAX_AGE
from ..errors import ValidationError, ConflictError
# Import for secure token generation (verification, password reset)
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired
from sqlalchemy.exc import IntegrityError
# Import for sending emails
import resend
import re

# Define the authentication blueprint for all auth-related routes
auth_bp = Blueprint("auth", __name__)

EMAIL_RE = re.compile(r"[^@]+@[^@]+\.[^@]+")


def _serializer():
    return URLSafeTimedSerializer(current_app.secret_key)


def _send_email(to, subject, html):
    """
    Send a transactional email through Resend.

    Does nothing (but logs) when no API key is configured.
    """
    if not current_app.config.get("RESEND_API_KEY"):
        current_app.logger.info("No email API key configured, skipping '%s' to %s", subject, to)
        return
    resend.Emails.send({
        "from": FROM_EMAIL,
        "to": [to],
        "subject": subject,
        "html": html,
    })


def _require_profile_fields(data):
    name = (data.get("name") or "").strip()
    username = (data.get("username") or "").strip()
    if not name or not username:
        raise ValidationError("Please fill in all fields")
    return name, username


def _username_taken(username, exclude_user=None):
    existing = User.query.filter_by(username=username).first()
    return existing is not None and existing is not exclude_user


def admin_message(user):
    """Greeting shown to administrators."""
    if not is_admin(user):
        return None
    if user.uid == current_app.config.get("ADMIN_UID"):
        return "Welcome, head administrator"
    return f"Welcome, administrator #{user.uid[:8]}"


def _me(user):
    return {
        **user.profile(),
        "email": user.email,
        "email_verified": user.email_verified,
        "is_admin": is_admin(user),
        "admin_message": admin_message(user),
        "show_admin_welcome": bool(session.get("show_admin_welcome")),
    }


def _update_profile(user, name, username):
    """Apply a profile change, keeping usernames unique."""
    if username != user.username and _username_taken(username, user):
        raise ConflictError("Username already exists")
    user.name = name
    user.username = username
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Username already exists")


@auth_bp.route("/csrf", methods=["GET"])
def csrf_token():
    """Hand the session's CSRF token to API clients."""
    make_csrf_token()
    return jsonify({"csrf_token": session.get("csrf_token")}), 200


@auth_bp.route("/register", methods=["POST"])
@csrf_protect
def register():
    """
    Register a new account and log it in.

    Payload: email, password, confirm_password, name, username.

    The profile and the verification email go together: if the email cannot
    be sent, nothing is stored.

    Returns:
        JSON: The new profile and status code 201.
    """
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    # Check if passwords match
    if password != data.get("confirm_password"):
        raise ValidationError("Passwords do not match")
    if not password:
        raise ValidationError("Password is required")
    name, username = _require_profile_fields(data)

    # Validate email format
    if not EMAIL_RE.match(email):
        raise ValidationError("Invalid email address")

    if _username_taken(username):
        raise ConflictError("Username already exists")
    if User.query.filter_by(email=email).first():
        raise ConflictError("Email already registered")

    uid = new_uid()
    role = ROLE_ADMIN if uid == current_app.config.get("ADMIN_UID") else ROLE_USER
    user = User(
        uid=uid,
        email=email,
        password=bcrypt.generate_password_hash(password).decode("utf-8"),
        name=name,
        username=username,
        role=role,
        created_at=utc_now_iso(),
    )
    db.session.add(user)
    try:
        db.session.flush()
        token = _serializer().dumps(uid, salt="verify-email")
        link = url_for("auth.verify_email", token=token, _external=True)
        _send_email(
            email,
            "Confirm your email address",
            f"<strong>Click the link to confirm your email: {link}</strong>",
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Username or email already registered")
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Registration failed for %s", email)
        return jsonify({"message": "Failed to save user data"}), 500

    session["uid"] = uid
    current_app.logger.info("Registered %s (%s)", username, uid)
    return jsonify({"message": "Registered", "user": _me(user)}), 201


@auth_bp.route("/login", methods=["POST"])
@csrf_protect
def login():
    """
    Log in with email and password.

    The head administrator gets the admin welcome flow on every login.
    """
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    user = User.query.filter_by(email=email).first()

    # Check if user exists and password hash matches
    if not user or not bcrypt.check_password_hash(user.password, password):
        return jsonify({"message": "Invalid email or password"}), 401

    session["uid"] = user.uid
    if user.uid == current_app.config.get("ADMIN_UID"):
        current_app.logger.info("Admin login detected")
        session["show_admin_welcome"] = True
    return jsonify({"message": "Logged in", "user": _me(user)}), 200


@auth_bp.route("/logout", methods=["POST"])
@csrf_protect
@login_required
def logout(user):
    """Clear the user session."""
    session.pop("uid", None)
    session.pop("show_admin_welcome", None)
    return jsonify({"message": "Logged out"}), 200


@auth_bp.route("/me", methods=["GET"])
@login_required
def me(user):
    """The logged-in user's profile and admin state."""
    return jsonify(_me(user)), 200


@auth_bp.route("/profile", methods=["PUT"])
@csrf_protect
@login_required
def update_profile(user):
    """Change name and username. A new username must be unused."""
    data = request.get_json(silent=True) or {}
    name, username = _require_profile_fields(data)
    _update_profile(user, name, username)
    return jsonify({"message": "Profile updated", "user": _me(user)}), 200


@auth_bp.route("/admin-welcome", methods=["POST"])
@csrf_protect
@admin_required
def admin_welcome(user):
    """Let an admin set their name and username, then close the welcome."""
    data = request.get_json(silent=True) or {}
    name, username = _require_profile_fields(data)
    _update_profile(user, name, username)
    session.pop("show_admin_welcome", None)
    return jsonify({"message": "Admin profile saved", "user": _me(user)}), 200


@auth_bp.route("/admin-welcome", methods=["DELETE"])
@csrf_protect
@login_required
def dismiss_admin_welcome(user):
    session.pop("show_admin_welcome", None)
    return jsonify({"message": "Dismissed"}), 200


@auth_bp.route("/account", methods=["DELETE"])
@csrf_protect
@login_required
def delete_account(user):
    """
    Delete the account with its schedule and friends list.

    Entries for this account in other users' friends lists go too.
    """
    uid = user.uid
    Friend.query.filter_by(friend_uid=uid).delete()
    db.session.delete(user)
    db.session.commit()
    session.clear()
    current_app.logger.info("Deleted account %s", uid)
    return jsonify({"message": "Account deleted"}), 200


@auth_bp.route("/verify/<token>", methods=["GET"])
def verify_email(token):
    """Mark the email of the account in the token as verified."""
    try:
        uid = _serializer().loads(token, salt="verify-email", max_age=VERIFY_TOKEN_MAX_AGE)
    except (SignatureExpired, BadSignature):
        return jsonify({"message": "Invalid or expired token"}), 400

    user = User.query.filter_by(uid=uid).first()
    if not user:
        return jsonify({"message": "Invalid or expired token"}), 400
    user.email_verified = True
    db.session.commit()
    return jsonify({"message": "Email verified"}), 200


@auth_bp.route("/forgot-password", methods=["POST"])
@csrf_protect
def forgot_password():
    """
    Email a password reset link.

    The token is bound to the current password hash, so it stops working
    once the password changed.
    """
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    user = User.query.filter_by(email=email).first()
    if not user:
        return jsonify({"message": "Email not found"}), 404

    token = _serializer().dumps(
        {"uid": user.uid, "pw": user.password[-12:]}, salt="reset-password"
    )
    link = url_for("auth.reset_password", token=token, _external=True)
    _send_email(
        email,
        "Password Reset Request",
        f"<strong>Click the link to reset your password: {link}</strong>",
    )
    return jsonify({"message": "Password reset link sent"}), 200


@auth_bp.route("/reset-password/<token>", methods=["POST"])
@csrf_protect
def reset_password(token):
    """Set a new password using a valid reset token."""
    try:
        claims = _serializer().loads(token, salt="reset-password", max_age=RESET_TOKEN_MAX_AGE)
    except (SignatureExpired, BadSignature):
        return jsonify({"message": "Invalid or expired token"}), 400

    user = User.query.filter_by(uid=claims.get("uid")).first()
    if not user or user.password[-12:] != claims.get("pw"):
        return jsonify({"message": "Invalid or expired token"}), 400

    data = request.get_json(silent=True) or {}
    new_password = data.get("new_password") or ""
    if not new_password or new_password != data.get("confirm_password"):
        raise ValidationError("Passwords do not match")

    user.password = bcrypt.generate_password_hash(new_password).decode("utf-8")
    db.session.commit()
    return jsonify({"message": "Password reset"}), 200
