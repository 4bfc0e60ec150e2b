"""Errors raised by the suitability funnel services."""

from typing import Optional


class SubmissionError(Exception):
    """Base class for funnel errors. ``code`` is the machine-readable reason."""

    code = "submission_error"
    default_message = "The submission could not be processed."

    def __init__(self, code: Optional[str] = None, message: Optional[str] = None):
        if code:
            self.code = code
        self.message = message or self.default_message
        super().__init__(f"{self.code}: {self.message}")


class ValidationError(SubmissionError):
    """Raised when a step payload is missing or has invalid fields. Never persisted."""

    code = "validation_error"
    default_message = "Please check the highlighted fields."


class IdentityNotFoundError(SubmissionError):
    """Raised when no existing submission matches the given token or email."""

    code = "identity_not_found"
    default_message = "No matching submission was found."


class PersistenceError(SubmissionError):
    """Raised when the database rejects a write. Callers may retry."""

    code = "persistence_error"
    default_message = "We could not save your answers. Please try again."


class MergeConflictError(SubmissionError):
    """Raised when duplicate records for an email cannot be reconciled."""

    code = "merge_conflict"
    default_message = "Duplicate submissions could not be merged."
