"""
Common Exception Classes

This module defines the exceptions raised by the learning engine. All of them
derive from ``BaseError`` so callers can catch engine failures as one family.
"""

from typing import Optional, Any, Dict


class BaseError(Exception):
    """Base class for all engine exceptions."""

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        """
        Initialize the exception.

        Args:
            message: Error message
            original_exception: Original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.original_exception = original_exception


class ValidationError(BaseError):
    """Exception raised when caller-supplied input is rejected."""

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        """
        Initialize the validation error.

        Args:
            message: Error message
            errors: Mapping of field name to problem description
        """
        super().__init__(f"Validation error: {message}")
        self.errors = errors or {}


class InvalidAttemptError(ValidationError):
    """
    Exception raised when a quiz attempt violates its preconditions.

    Raised before the ledger is loaded, so no partial mutation is ever
    persisted for a rejected attempt.
    """

    def __init__(self, errors: Dict[str, str]):
        details = "; ".join(f"{field}: {problem}" for field, problem in errors.items())
        super().__init__(f"invalid quiz attempt ({details})", errors)


class RecordStoreUnavailableError(BaseError):
    """Exception raised when the ledger record store cannot be reached or fails."""

    def __init__(self, operation: str, original_exception: Optional[Exception] = None):
        """
        Initialize the record store error.

        Args:
            operation: Store operation that failed (load, save, delete...)
            original_exception: Driver exception that caused the failure
        """
        reason = f": {original_exception}" if original_exception else ""
        super().__init__(f"Record store error during {operation}{reason}", original_exception)
        self.operation = operation


class ConcurrentUpdateError(BaseError):
    """Exception raised when a ledger was modified by someone else between load and save."""

    def __init__(self, student_email: str, course_id: str, expected_version: Any = None):
        """
        Initialize the conflict error.

        Args:
            student_email: Student part of the ledger key
            course_id: Course part of the ledger key
            expected_version: Version the writer started from
        """
        super().__init__(
            f"Ledger ({student_email}, {course_id}) changed concurrently"
            f" (expected version {expected_version})"
        )
        self.student_email = student_email
        self.course_id = course_id
        self.expected_version = expected_version


class ConfigurationError(BaseError):
    """Exception raised for configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        """
        Initialize the configuration error.

        Args:
            message: Error message
            config_key: The configuration key that caused the error
        """
        super().__init__(f"Configuration error: {message}")
        self.config_key = config_key
