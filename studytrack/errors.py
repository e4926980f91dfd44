class StudyTrackError(Exception):
    """Base class for errors that map straight onto an API response."""

    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"message": self.message}


class ValidationError(StudyTrackError):
    status_code = 400


class NotFoundError(StudyTrackError):
    status_code = 404


class ConflictError(StudyTrackError):
    status_code = 409


class ForbiddenError(StudyTrackError):
    status_code = 403
