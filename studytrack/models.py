from .extensions import db
from .consts import ROLE_USER, ACTIVE

# -------------------------------
# User identity and profile
# -------------------------------

class User(db.Model):
    """
    Stores the account identity and the public profile.

    Attributes:
        id (int): Primary key.
        uid (str): Opaque identity string, stable for the account's lifetime.
        email (str): Unique login email.
        password (str): Hashed password.
        email_verified (bool): Set once the verification link was followed.
        name (str): Display name.
        username (str): Unique handle used to find friends.
        role (str): 'user' or 'admin'.
        sessions (relationship): The user's study schedule.
        friends (relationship): The user's friends list.
    """
    id = db.Column(db.Integer, primary_key=True)
    uid = db.Column(db.String(64), unique=True, nullable=False)
    email = db.Column(db.String(254), unique=True, nullable=False)
    password = db.Column(db.String(100), nullable=False)  # Hashed password
    email_verified = db.Column(db.Boolean, nullable=False, default=False)
    name = db.Column(db.String(100), nullable=False)
    username = db.Column(db.String(100), unique=True, nullable=False)
    role = db.Column(db.String(10), nullable=False, default=ROLE_USER)
    created_at = db.Column(db.String(50), nullable=False)

    # Relationships
    sessions = db.relationship(
        "StudySession", backref="user", lazy=True, cascade="all, delete-orphan"
    )
    friends = db.relationship(
        "Friend", backref="owner", lazy=True, cascade="all, delete-orphan"
    )

    def profile(self):
        return {
            "name": self.name,
            "username": self.username,
            "role": self.role,
            "uid": self.uid,
        }

# -------------------------------
# Study schedule
# -------------------------------

class StudySession(db.Model):
    """
    One row of a user's schedule document.

    Attributes:
        id (str): Session id (generated, unique).
        user_id (int): Foreign key to User.
        subject (str): Subject key (see consts.SUBJECTS).
        start_date (str): Local start datetime (YYYY-MM-DDTHH:MM).
        end_date (str): Local end datetime (YYYY-MM-DDTHH:MM).
        lessons (list): Ordered [{"name": str, "completed": bool}].
        status (str): active, completed or postponed.
        created_at (str): ISO timestamp of creation.
    """
    id = db.Column(db.String(40), primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("user.id", onupdate="CASCADE"), nullable=False
    )
    subject = db.Column(db.String(100), nullable=False)
    start_date = db.Column(db.String(50), nullable=False)
    end_date = db.Column(db.String(50), nullable=False)
    lessons = db.Column(db.JSON, nullable=False, default=list)
    status = db.Column(db.String(20), nullable=False, default=ACTIVE)
    created_at = db.Column(db.String(50), nullable=False)

    def to_doc(self):
        return {
            "id": self.id,
            "subject": self.subject,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "lessons": [dict(lesson) for lesson in (self.lessons or [])],
            "status": self.status,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_doc(cls, user_id, doc):
        return cls(
            id=doc["id"],
            user_id=user_id,
            subject=doc["subject"],
            start_date=doc["startDate"],
            end_date=doc["endDate"],
            lessons=[
                {"name": lesson["name"], "completed": bool(lesson.get("completed"))}
                for lesson in doc.get("lessons", [])
            ],
            status=doc.get("status", ACTIVE),
            created_at=doc["createdAt"],
        )

# -------------------------------
# Friends list
# -------------------------------

class Friend(db.Model):
    """
    A snapshot of another user's profile in someone's friends list.

    Attributes:
        id (str): Push key of the entry.
        user_id (int): Foreign key to the owning User.
        friend_uid (str): uid of the befriended account.
        username (str): Friend's username when added.
        name (str): Friend's name when added.
        role (str): Friend's role when added.
        added_at (int): Epoch milliseconds.
    """
    id = db.Column(db.String(40), primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    friend_uid = db.Column(db.String(64), nullable=False)
    username = db.Column(db.String(100), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    role = db.Column(db.String(10), nullable=False, default=ROLE_USER)
    added_at = db.Column(db.BigInteger, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "uid": self.friend_uid,
            "username": self.username,
            "name": self.name,
            "role": self.role,
            "addedAt": self.added_at,
        }

# -------------------------------
# Exams (shared, admin managed)
# -------------------------------

class Exam(db.Model):
    """
    An exam date in the shared exam timetable.

    Attributes:
        id (int): Primary key.
        subject (str): Subject key.
        day (str): Weekday label shown next to the date.
        date (str): Exam date (YYYY-MM-DD).
        topics (list): Topics the exam covers.
    """
    id = db.Column(db.Integer, primary_key=True)
    subject = db.Column(db.String(100), nullable=False)
    day = db.Column(db.String(20), nullable=False)
    date = db.Column(db.String(20), nullable=False)
    topics = db.Column(db.JSON, nullable=False, default=list)

    def to_dict(self):
        return {
            "id": self.id,
            "subject": self.subject,
            "day": self.day,
            "date": self.date,
            "topics": list(self.topics or []),
        }
