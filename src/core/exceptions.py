"""Structured exception hierarchy for the settlement engine.

This module defines the exception system of the Bilan engine, providing a
rich error model that supports debugging, monitoring and a clean mapping to
whatever outer layer (HTTP, CLI, job runner) calls the engine.

Key components:
- **ErrorCode enum**: Standardized error identifiers for programmatic handling
- **Severity enum**: Error classification for monitoring and alerting
- **BilanError**: Base exception with rich context and fingerprinting
- **Specialized exceptions**: One class per settlement failure kind

Every settlement error is terminal for the current computation: the engine
never retries internally and never returns a partial report.
"""

import hashlib
import traceback
from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Standardized error codes for the Bilan engine."""

    # System errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    """An unexpected internal error occurred in the system."""

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Input validation failed due to invalid or malformed data."""

    # Resource errors
    NOT_FOUND = "NOT_FOUND"
    """The requested resource could not be found."""

    # Settlement errors
    INVALID_PERIOD = "INVALID_PERIOD"
    """The requested week/year pair does not designate a settlement period."""

    INVALID_ROLE_CONFIG = "INVALID_ROLE_CONFIG"
    """A role compensation rule is out of range."""

    INVALID_REVENUE = "INVALID_REVENUE"
    """A revenue amount is negative."""

    INVALID_INPUT = "INVALID_INPUT"
    """A numeric routine received an input outside its domain."""

    INVALID_TAX_CONFIG = "INVALID_TAX_CONFIG"
    """The company's tax brackets are unordered, overlapping or out of range."""

    EXTERNAL_SOURCE_UNAVAILABLE = "EXTERNAL_SOURCE_UNAVAILABLE"
    """A collaborator read failed or timed out."""


class Severity(Enum):
    """Severity levels for errors in the Bilan engine."""

    LOW = "LOW"
    """Low severity errors that don't significantly impact functionality."""

    MEDIUM = "MEDIUM"
    """Medium severity errors that may affect some features but not critical ops."""

    HIGH = "HIGH"
    """High severity errors impacting critical functionality or data integrity."""

    CRITICAL = "CRITICAL"
    """Critical errors requiring immediate attention, may cause system failures."""


class BilanError(Exception):
    """Base exception class for all Bilan exceptions.

    Args:
        error_code: Unique identifier for the error type (string or ErrorCode enum)
        message: Human-readable error message
        severity: Severity level of the error (defaults to MEDIUM)
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        error_code: str | ErrorCode,
        message: str,
        severity: Severity = Severity.MEDIUM,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.error_code = (
            error_code.value if isinstance(error_code, ErrorCode) else error_code
        )
        self.message = message
        self.severity = severity
        self.context = context or {}
        self.cause = cause

        # Capture stack trace at creation time
        self.stack_trace = traceback.format_stack()[:-1]  # Exclude this frame

        self.fingerprint = self._generate_fingerprint()

        super().__init__(message)
        if cause:
            self.__cause__ = cause

    def _generate_fingerprint(self) -> str:
        """Generate a fingerprint for error grouping.

        Creates a hash based on the error type and the location where it was
        raised, allowing similar errors to be grouped together in monitoring.

        Returns:
            str: A hash string for error grouping
        """
        max_frames = 5
        relevant_frames = (
            self.stack_trace[-max_frames:]
            if len(self.stack_trace) > max_frames
            else self.stack_trace
        )

        fingerprint_data = f"{self.__class__.__name__}:{self.error_code}"

        for frame in relevant_frames:
            if "site-packages" not in frame and "src/" in frame:
                lines = frame.strip().split("\n")
                if lines:
                    fingerprint_data += f":{lines[0]}"

        return hashlib.sha256(fingerprint_data.encode()).hexdigest()[:16]

    @property
    def is_expected(self) -> bool:
        """Determine if this is an expected error based on severity.

        Returns:
            bool: True if the error is expected (LOW or MEDIUM severity)
        """
        return self.severity in (Severity.LOW, Severity.MEDIUM)

    @property
    def should_alert(self) -> bool:
        """Determine if this error should trigger alerts.

        Returns:
            bool: True if the error should trigger alerts (HIGH or CRITICAL severity)
        """
        return self.severity in (Severity.HIGH, Severity.CRITICAL)

    def __str__(self) -> str:
        """Return a string representation of the exception."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return a detailed representation of the exception."""
        class_name = self.__class__.__name__
        context_str = f", context={self.context}" if self.context else ""
        return (
            f"{class_name}(error_code='{self.error_code}', "
            f"message='{self.message}', severity={self.severity.value}{context_str})"
        )


class ValidationError(BilanError):
    """Exception raised when input validation fails.

    Args:
        message: Description of the validation failure
        error_code: Error code (defaults to VALIDATION_ERROR)
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.VALIDATION_ERROR,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.LOW, context, cause)


class NotFoundError(BilanError):
    """Exception raised when a requested resource cannot be found.

    Raised when a collaborator reports that the company being settled does
    not exist.
    """

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.NOT_FOUND,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.LOW, context, cause)


class InvalidPeriodError(ValidationError):
    """Raised for a week/year pair that does not designate a settlement week."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.INVALID_PERIOD, context, cause)


class InvalidRoleConfigError(ValidationError):
    """Raised when a revenue-share percent or salary cap is out of range."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.INVALID_ROLE_CONFIG, context, cause)


class InvalidRevenueError(ValidationError):
    """Raised when a revenue amount is negative."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.INVALID_REVENUE, context, cause)


class InvalidInputError(ValidationError):
    """Raised when a numeric routine receives an input outside its domain."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.INVALID_INPUT, context, cause)


class InvalidTaxConfigError(ValidationError):
    """Raised when a company's tax brackets cannot be applied."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.INVALID_TAX_CONFIG, context, cause)


class ExternalSourceUnavailableError(BilanError):
    """Exception raised when a collaborator read fails or times out.

    The whole settlement must be retried from scratch by the caller; no
    sub-result is cached across attempts.

    Args:
        source: Name of the collaborator that failed
        message: Description of the failure
        context: Additional context information about the error
        cause: The original exception raised by the collaborator
    """

    def __init__(
        self,
        source: str,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.source = source
        super().__init__(
            ErrorCode.EXTERNAL_SOURCE_UNAVAILABLE,
            message,
            Severity.HIGH,
            {"source": source, **(context or {})},
            cause,
        )
