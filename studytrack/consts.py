FROM_EMAIL = "StudyTrack <noreply@studytrack.app>"

# Session lifecycle states
ACTIVE = "active"
COMPLETED = "completed"
POSTPONED = "postponed"
SESSION_STATUSES = (ACTIVE, COMPLETED, POSTPONED)

ROLE_USER = "user"
ROLE_ADMIN = "admin"

REMINDER_MINUTES = 5      # Heads-up before an active session starts

# Subject keys and their display names
SUBJECTS = {
    "arabic": "Arabic",
    "english": "English",
    "math": "Mathematics",
    "chemistry": "Chemistry",
    "physics": "Physics",
    "biology": "Biology",
    "geology": "Geology",
    "constitution": "Constitution",
    "islamic": "Islamic Education",
}

# Token lifetimes in seconds
VERIFY_TOKEN_MAX_AGE = 60 * 60 * 24
RESET_TOKEN_MAX_AGE = 900


def subject_name(subject):
    """Display name for a subject key, falling back to the key itself."""
    return SUBJECTS.get(subject, subject)
