"""
Custom exception classes for better error handling
Every error carries an HTTP status code and a stable machine-readable code
"""

from typing import Optional, Dict, Any


class AppException(Exception):
    """
    Base exception class for application errors
    """
    code = "app_error"

    def __init__(self, message: str, status_code: int = 500, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppException):
    """
    Exception for invalid input (bad topic/difficulty, missing field)
    """
    code = "invalid_input"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=400, details=details)


class InvalidTopicError(ValidationError):
    code = "invalid_topic"

    def __init__(self, topic: str, allowed: Optional[list] = None):
        details = {"topic": topic}
        if allowed:
            details["allowed_topics"] = list(allowed)
        super().__init__(
            "Invalid topic. Please select a technical interview topic.",
            details=details
        )


class NotFoundError(AppException):
    """
    Exception for resource not found errors
    """
    code = "not_found"

    def __init__(self, resource: str, identifier: Optional[str] = None):
        message = f"{resource} not found"
        if identifier:
            message += f": {identifier}"
        super().__init__(message, status_code=404)


class UnauthorizedError(AppException):
    """
    Resource exists but belongs to another user
    """
    code = "unauthorized"

    def __init__(self, resource: str):
        super().__init__(f"Not authorized to access this {resource.lower()}", status_code=403)


class AuthenticationError(AppException):
    code = "authentication_failed"

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, status_code=401)


class ConflictError(AppException):
    code = "conflict"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=409, details=details)


class InterviewClosedError(ConflictError):
    code = "interview_closed"

    def __init__(self, interview_id: str):
        super().__init__(
            "Interview is already completed",
            details={"interview_id": interview_id}
        )


class DuplicateAnswerError(ConflictError):
    code = "duplicate_answer"

    def __init__(self, question_id: str):
        super().__init__(
            "This question has already been answered",
            details={"question_id": question_id}
        )


class ConcurrencyConflictError(ConflictError):
    code = "concurrency_conflict"


class DatabaseError(AppException):
    """
    Exception for database operation errors
    """
    code = "database_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=500, details=details)


class ConfigurationError(AppException):
    code = "configuration_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=500, details=details)


class UpstreamError(AppException):
    """
    Generic failure of an external collaborator (AI service or record store)
    """
    code = "upstream_error"

    def __init__(self, message: str, status_code: int = 502, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=status_code, details=details)


class UpstreamAuthError(UpstreamError):
    code = "upstream_auth"

    def __init__(self, message: str = "Invalid or unauthorized AI service API key. Please check your API key."):
        super().__init__(message, status_code=502)


class UpstreamRateLimitedError(UpstreamError):
    code = "upstream_rate_limited"

    def __init__(self, message: str = "AI service rate limit exceeded. Please try again later."):
        super().__init__(message, status_code=429)


class UpstreamMalformedError(UpstreamError):
    code = "upstream_malformed"

    def __init__(self, message: str = "Failed to parse AI service response. Please try again."):
        super().__init__(message, status_code=502)


class UpstreamTimeoutError(UpstreamError):
    code = "upstream_timeout"

    def __init__(self, message: str = "Upstream service timed out. Please try again."):
        super().__init__(message, status_code=504)
