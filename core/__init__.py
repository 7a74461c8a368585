"""
Core utilities and configuration for the document importer.

This package provides foundational components used throughout the importer:

Modules:
    config: Application configuration and environment variable management
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings, parse_byte_size
    from core.exceptions import ParseError, RetryExhaustedError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    threshold = parse_byte_size("20 MB")
"""

from core.config import settings, parse_byte_size
from core.exceptions import (
    ImporterException,
    InputError,
    InputNotFoundError,
    UnsupportedFormatError,
    ParseError,
    CSVParseError,
    JSONParseError,
    DeliveryError,
    TransportError,
    ServerError,
    RetryExhaustedError,
    RetryableError,
    NonRetryableError,
)
from core.logging import setup_logging

__all__ = [
    "settings",
    "parse_byte_size",
    "setup_logging",
    # Exceptions
    "ImporterException",
    "InputError",
    "InputNotFoundError",
    "UnsupportedFormatError",
    "ParseError",
    "CSVParseError",
    "JSONParseError",
    "DeliveryError",
    "TransportError",
    "ServerError",
    "RetryExhaustedError",
    "RetryableError",
    "NonRetryableError",
]
