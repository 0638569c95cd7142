"""
Utility functions for common operations
"""

from .exceptions import (
    AppException,
    ValidationError,
    InvalidTopicError,
    NotFoundError,
    UnauthorizedError,
    AuthenticationError,
    ConflictError,
    InterviewClosedError,
    DuplicateAnswerError,
    ConcurrencyConflictError,
    ConfigurationError,
    DatabaseError,
    UpstreamError,
    UpstreamAuthError,
    UpstreamRateLimitedError,
    UpstreamMalformedError,
    UpstreamTimeoutError
)

from .datetime_utils import (
    utc_now,
    utc_now_iso,
    to_iso,
    parse_datetime,
    iso_week_label
)

from .keyed_lock import KeyedLock

__all__ = [
    # Exceptions
    "AppException",
    "ValidationError",
    "InvalidTopicError",
    "NotFoundError",
    "UnauthorizedError",
    "AuthenticationError",
    "ConflictError",
    "InterviewClosedError",
    "DuplicateAnswerError",
    "ConcurrencyConflictError",
    "ConfigurationError",
    "DatabaseError",
    "UpstreamError",
    "UpstreamAuthError",
    "UpstreamRateLimitedError",
    "UpstreamMalformedError",
    "UpstreamTimeoutError",
    # Datetime utilities
    "utc_now",
    "utc_now_iso",
    "to_iso",
    "parse_datetime",
    "iso_week_label",
    # Concurrency
    "KeyedLock"
]
