"""
Custom exceptions for the importer with structured error context.

This module provides the exception hierarchy used from input resolution
through delivery. Each exception carries context information for
debugging and for the final error message printed by the CLI.

Exception Hierarchy:
    ImporterException (base)
    ├── InputError
    │   ├── InputNotFoundError
    │   └── UnsupportedFormatError
    ├── ParseError
    │   ├── CSVParseError
    │   └── JSONParseError
    ├── DeliveryError
    │   ├── TransportError (retryable)
    │   ├── ServerError (retryable)
    │   └── RetryExhaustedError (fatal)
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class ImporterException(Exception):
    """
    Base exception for all importer errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (path, batch index, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(ImporterException):
    """
    Mixin for errors that are retried by the sender's backoff loop.

    Use this for transient delivery errors:
    - Connection failures and timeouts
    - Any non-2xx response from the endpoint
    """
    pass


class NonRetryableError(ImporterException):
    """
    Mixin for errors that abort the run without retrying.
    """
    pass


# ============================================================================
# Input Errors
# ============================================================================

class InputError(NonRetryableError):
    """Base exception for unusable inputs."""
    pass


class InputNotFoundError(InputError):
    """
    Exception raised when an input file does not exist or cannot be read.

    Context should include:
        - path: The path that was requested
    """
    pass


class UnsupportedFormatError(InputError):
    """
    Exception raised when the format of an input cannot be determined, or
    does not support the requested record transforms.

    Context should include:
        - path: The path whose extension was inspected
        - extension: The extension found (if any)
    """
    pass


# ============================================================================
# Parse Errors
# ============================================================================

class ParseError(NonRetryableError):
    """Base exception for malformed records. Parsing never skips ahead."""
    pass


class CSVParseError(ParseError):
    """
    Exception raised when a CSV row cannot be read.

    Context should include:
        - line_number: Line number where the error occurred
        - expected_fields: Field count of the header (for ragged rows)
        - found_fields: Field count of the offending row
    """
    pass


class JSONParseError(ParseError):
    """
    Exception raised when an NDJSON record is not a valid JSON object.

    Context should include:
        - record_number: Index of the record in the stream
    """
    pass


# ============================================================================
# Delivery Errors
# ============================================================================

class DeliveryError(ImporterException):
    """Base exception for failures talking to the document endpoint."""
    pass


class TransportError(RetryableError, DeliveryError):
    """Connection failures and timeouts."""
    pass


class ServerError(RetryableError, DeliveryError):
    """Non-2xx responses. The response body is kept for the logs."""

    def __init__(
        self,
        message: str,
        status_code: int,
        body: str = "",
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, context)
        self.status_code = status_code
        self.body = body
        self.context["status_code"] = status_code


class RetryExhaustedError(NonRetryableError, DeliveryError):
    """
    Exception raised when a batch could not be delivered within the
    configured number of attempts. Aborts the whole run.

    Context should include:
        - batch_index: Index of the batch that failed
        - attempts: Number of attempts made
    """
    pass
