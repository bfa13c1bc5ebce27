"""Exceptions raised inside the personalization engine.

These never reach the host page on their own: the stores and the section
assembler catch them and degrade to a non-personalized experience.
"""

from typing import Any, Dict, Optional


class PersonalizationError(Exception):
    """Base exception for personalization engine errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize exception.

        Args:
            message: Human-readable error message
            details: Additional error details for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StorageError(PersonalizationError):
    """Raised when the blob store cannot read or write a key."""

    def __init__(self, key: str, error: Exception):
        message = f"Storage operation failed for key '{key}': {str(error)}"
        super().__init__(
            message=message,
            details={
                "key": key,
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )
        self.key = key


class BuildError(PersonalizationError):
    """Raised (or carried in a build result) when section assembly fails."""

    def __init__(self, step: str, error: Exception):
        message = f"Failed to build personalized sections at step '{step}': {str(error)}"
        super().__init__(
            message=message,
            details={
                "step": step,
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )
        self.step = step
        self.original = error


class SettingsValidationError(PersonalizationError):
    """Raised when a settings update contains unknown keys or invalid values."""

    def __init__(self, errors: Any):
        super().__init__(
            message=f"Invalid personalization settings: {errors}",
            details={"errors": errors},
        )
        self.errors = errors
