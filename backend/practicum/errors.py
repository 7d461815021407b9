"""Domain error taxonomy.

Services raise these; main.py turns them into the JSON envelope
``{"success": false, "message": ..., <flags>}`` with the carried status.
"""

from typing import Optional


class PracticumError(Exception):
    status_code = 500

    def __init__(self, message: str, **flags):
        super().__init__(message)
        self.message = message
        self.flags = flags

    def to_dict(self) -> dict:
        body = {"success": False, "message": self.message}
        body.update(self.flags)
        return body


class ValidationError(PracticumError):
    status_code = 400


class AuthError(PracticumError):
    status_code = 401


class ForbiddenError(PracticumError):
    status_code = 403


class NotFoundError(PracticumError):
    status_code = 404


class ConflictError(PracticumError):
    status_code = 409


class AlreadySubmittedError(PracticumError):
    """A write-once slot (evaluation attempt, lesson plan, video, feedback) is taken."""

    status_code = 400

    def __init__(self, message: str, **flags):
        super().__init__(message, alreadySubmitted=True, **flags)


class ChangeWindowExpiredError(PracticumError):
    status_code = 403

    def __init__(self, message: str, days_passed: int):
        super().__init__(message, cannotChange=True, daysPassed=days_passed)


class ConfirmationRequiredError(PracticumError):
    """School change would discard the student's mentor and evaluation work."""

    status_code = 400

    def __init__(
        self,
        message: str,
        evaluation_count: int,
        has_mentor: bool,
        old_school_name: Optional[str],
        new_school_name: str,
    ):
        super().__init__(
            message,
            requiresConfirmation=True,
            evaluationCount=evaluation_count,
            hasMentor=has_mentor,
            oldSchoolName=old_school_name,
            newSchoolName=new_school_name,
        )


class MentorOccupiedError(PracticumError):
    status_code = 400

    def __init__(self, message: str, occupied_by: Optional[str] = None):
        super().__init__(message, mentorOccupied=True, occupiedBy=occupied_by)


class NotEligibleError(PracticumError):
    status_code = 403


class InternalError(PracticumError):
    status_code = 500
