"""Library helpers for the research study marketplace."""

from .errors import (  # noqa: F401
    AuthError,
    AuthRequiredError,
    GenerationError,
    PersistenceError,
    StudyKitError,
    ValidationError,
)
