"""Exception types shared by the wizard, the stores and the pages."""

from __future__ import annotations

from typing import Dict, Mapping, Optional


class StudyKitError(Exception):
    """Base class for errors raised by ``studykit``."""


class ValidationError(StudyKitError):
    """Input was rejected before any backend call was made.

    ``errors`` maps a field name to the message shown next to that field.
    """

    def __init__(self, errors: Mapping[str, str], message: Optional[str] = None) -> None:
        self.errors: Dict[str, str] = dict(errors)
        super().__init__(message or "; ".join(self.errors.values()) or "Invalid input")


class AuthRequiredError(StudyKitError):
    """Raised when an operation needs a signed-in user and there is none."""

    def __init__(self, message: str = "You must be signed in to continue.") -> None:
        super().__init__(message)


class AuthError(StudyKitError):
    """The auth provider rejected a sign-up, sign-in or sign-out."""


class PersistenceError(StudyKitError):
    """A call to the data service or the blob store failed."""


class GenerationError(StudyKitError):
    """The question generator failed or returned something unusable."""


__all__ = [
    "AuthError",
    "AuthRequiredError",
    "GenerationError",
    "PersistenceError",
    "StudyKitError",
    "ValidationError",
]
