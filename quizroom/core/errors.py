"""Exceptions raised by the quiz core and translated at the API boundary."""

from __future__ import annotations


class QuizError(Exception):
    """Base class for errors reported synchronously to the caller."""

    code: str = "QUIZ_ERROR"
    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(QuizError):
    """Raised when a submission or quiz definition is malformed."""

    code = "VALIDATION_ERROR"
    status_code = 400


class ParticipantNotFound(QuizError):
    code = "PARTICIPANT_NOT_FOUND"
    status_code = 404


class QuizNotFound(QuizError):
    code = "QUIZ_NOT_FOUND"
    status_code = 404


class SessionNotFound(QuizError):
    code = "SESSION_NOT_FOUND"
    status_code = 404


class MaxAttemptsReached(QuizError):
    code = "MAX_ATTEMPTS_REACHED"
    status_code = 429


class QuizExpired(QuizError):
    """Raised after an expired quiz has been deactivated."""

    code = "QUIZ_EXPIRED"
    status_code = 410
