"""
Mastery Engine Errors.

Every error carries two messages: the technical one passed to Exception
and a user-safe message a UI can show as-is. ``recoverable`` tells the
caller whether retrying the operation can help.
"""

from __future__ import annotations


class MasteryEngineError(Exception):
    """Base error for the mastery engine."""

    default_user_message = "Something went wrong. Please try again."

    def __init__(
        self,
        message: str,
        user_message: str | None = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.user_message = user_message or self.default_user_message
        self.recoverable = recoverable


class ProfileStoreError(MasteryEngineError):
    """Raised when the profile store cannot read or write a document."""

    default_user_message = "We had trouble saving your data. Check the connection and try again."


class ProfileUpdateError(MasteryEngineError):
    """Raised when a quiz result could not be applied to the learner profile."""

    default_user_message = "We couldn't update the learning profile. Your quiz results are still saved."


class ProfileSchemaError(MasteryEngineError):
    """Raised when a persisted profile document fails validation."""

    default_user_message = "The saved learning profile could not be read."

    def __init__(self, message: str, user_message: str | None = None):
        super().__init__(message, user_message, recoverable=False)
