"""
Custom exception classes for the application.

These exceptions are caught by global exception handlers in exception_handlers.py,
providing consistent error responses across all API endpoints.

Usage:
    from app.exceptions import NotFoundError, ValidationError

    # In route handlers - just raise, no try-except needed
    raise NotFoundError("Course")             # 404: "Course not found"
    raise ValidationError("Empty question")   # 400: "Empty question"
"""


class AppException(Exception):
    """
    Base exception class for application-level errors.

    All custom exceptions should inherit from this class.
    The global exception handler will catch these and return
    appropriate HTTP responses.

    Attributes:
        message: Human-readable error message
        status_code: HTTP status code to return
        error_code: Machine-readable error code for client handling
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or f"ERR_{status_code}"
        super().__init__(message)


class NotFoundError(AppException):
    """
    Resource not found (404).

    Usage:
        raise NotFoundError("Course")  # "Course not found"
        raise NotFoundError("Post")    # "Post not found"
    """

    def __init__(self, resource: str = "Resource"):
        super().__init__(
            message=f"{resource} not found",
            status_code=404,
            error_code="NOT_FOUND",
        )


class ValidationError(AppException):
    """
    Validation error (400).

    Usage:
        raise ValidationError("Message must not be empty")
        raise ValidationError("Uploaded file is empty")
    """

    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=400,
            error_code="VALIDATION_ERROR",
        )


class ConfigurationError(AppException):
    """
    Server-side configuration missing or invalid (503).

    Usage:
        raise ConfigurationError("OPENAI_API_KEY")  # "Please configure OPENAI_API_KEY first"
    """

    def __init__(self, config_name: str, config_type: str = "setting"):
        super().__init__(
            message=f"Please configure {config_name} {config_type} first",
            status_code=503,
            error_code="CONFIGURATION_MISSING",
        )


class ExternalServiceError(AppException):
    """
    External service error (502).

    Usage:
        raise ExternalServiceError("OpenAI API", "invalid request")
        raise ExternalServiceError("Supabase Storage", "upload failed")
    """

    def __init__(self, service: str, reason: str | None = None):
        message = f"{service} error"
        if reason:
            message = f"{service} error: {reason}"
        super().__init__(
            message=message,
            status_code=502,
            error_code="EXTERNAL_SERVICE_ERROR",
        )


class ServiceUnavailableError(AppException):
    """
    Upstream temporarily unavailable, client may retry later (503).

    Usage:
        raise ServiceUnavailableError("OpenAI API", "rate limited", "GENERATION_UNAVAILABLE")
    """

    def __init__(
        self,
        service: str,
        reason: str | None = None,
        error_code: str = "SERVICE_UNAVAILABLE",
    ):
        message = f"{service} temporarily unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            status_code=503,
            error_code=error_code,
        )
