# Import Flask modules for routing and JSON responses
from flask import Blueprint, request, jsonify, current_app

# Import application models and utilities
from ..extensions import db
from ..models import User, Friend
from ..schedule import load_schedule, save_schedule
from ..utils import login_required, csrf_protect, new_id, now_ms, utc_now_iso
from ..errors import ValidationError, NotFoundError, ConflictError

# Define the blueprint for friends-related API routes
friends_bp = Blueprint("friends", __name__)


@friends_bp.route("/", methods=["GET"])
@login_required
def list_friends(user):
    """
    The friends list and, for friends who have one, their schedule.

    Returns:
        JSON: {"friends": [...], "schedules": {uid: [sessions]}}.
    """
    friends = Friend.query.filter_by(user_id=user.id).order_by(Friend.added_at).all()
    schedules = {}
    for friend in friends:
        account = User.query.filter_by(uid=friend.friend_uid).first()
        if account:
            sessions = load_schedule(account)
            if sessions:
                schedules[friend.friend_uid] = sessions
    return jsonify({
        "friends": [friend.to_dict() for friend in friends],
        "schedules": schedules,
    }), 200


@friends_bp.route("/", methods=["POST"])
@csrf_protect
@login_required
def add_friend(user):
    """
    Add a friend by username.

    Returns:
        JSON: The new entry and status code 201; 404 for unknown usernames,
        400 for yourself, 409 for someone already in the list.
    """
    username = ((request.get_json(silent=True) or {}).get("username") or "").strip()
    if not username:
        raise ValidationError("Username is required")

    account = User.query.filter_by(username=username).first()
    if not account:
        raise NotFoundError("No user found with this username")
    if account.uid == user.uid:
        raise ValidationError("You cannot add yourself as a friend")
    if Friend.query.filter_by(user_id=user.id, friend_uid=account.uid).first():
        raise ConflictError("This user is already your friend")

    friend = Friend(
        id=new_id(),
        user_id=user.id,
        friend_uid=account.uid,
        username=account.username,
        name=account.name,
        role=account.role,
        added_at=now_ms(),
    )
    db.session.add(friend)
    db.session.commit()
    return jsonify({"message": "Friend added", "friend": friend.to_dict()}), 201


@friends_bp.route("/<friend_id>", methods=["DELETE"])
@csrf_protect
@login_required
def remove_friend(user, friend_id):
    """Remove an entry (by its id) from the friends list."""
    friend = Friend.query.filter_by(id=friend_id, user_id=user.id).first()
    if not friend:
        raise NotFoundError("Friend not found")
    name = friend.name
    db.session.delete(friend)
    db.session.commit()
    return jsonify({"message": f"Removed {name} from your friends"}), 200


@friends_bp.route("/<friend_uid>/copy", methods=["POST"])
@csrf_protect
@login_required
def copy_friend_schedule(user, friend_uid):
    """
    Replace your schedule with a copy of a friend's.

    Copied sessions get new ids; statuses and lessons are kept as they are.
    Nothing changes when the friend has no schedule.
    """
    if not Friend.query.filter_by(user_id=user.id, friend_uid=friend_uid).first():
        raise NotFoundError("Friend not found")
    account = User.query.filter_by(uid=friend_uid).first()
    sessions = load_schedule(account) if account else []
    if not sessions:
        return jsonify({"message": "Your friend has no schedule to copy", "copied": 0}), 200

    copied = [
        dict(doc, id=new_id(), createdAt=utc_now_iso())
        for doc in sessions
    ]
    save_schedule(user, copied)
    current_app.logger.info("%s copied the schedule of %s", user.uid, friend_uid)
    return jsonify({
        "message": f"Copied the schedule of {account.name}",
        "copied": len(copied),
    }), 200
