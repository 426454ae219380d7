"""
Service-layer error handling for remote AI calls.

Provides:
1. AI service exceptions carrying structured error info
2. Classification of OpenAI SDK exceptions (transient vs fatal)
3. Logging helpers
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type, TypeVar

from openai import (
    APIError as OpenAIAPIError,
    APIStatusError,
    APIConnectionError,
    APITimeoutError,
    AuthenticationError as OpenAIAuthError,
    PermissionDeniedError as OpenAIPermissionError,
    RateLimitError as OpenAIRateLimitError,
    BadRequestError,
    NotFoundError as OpenAINotFoundError,
    InternalServerError,
)

logger = logging.getLogger(__name__)

# Error types worth retrying: the remote side is overloaded or unreachable.
TRANSIENT_ERROR_TYPES = frozenset({"server_error", "rate_limit", "timeout", "connection"})


# =============================================================================
# Structured Error Info
# =============================================================================

@dataclass
class AIErrorInfo:
    """Structured information about an AI service failure."""

    error_type: str  # "rate_limit", "authentication", "timeout", ...
    message: str  # user-facing message
    status_code: Optional[int] = None
    request_id: Optional[str] = None
    error_code: Optional[str] = None  # OpenAI error code
    error_param: Optional[str] = None  # OpenAI error param
    raw_body: Optional[Any] = None

    @property
    def transient(self) -> bool:
        return self.error_type in TRANSIENT_ERROR_TYPES

    def to_log_dict(self) -> Dict[str, Any]:
        """Log-friendly dict without None values."""
        return {
            k: v
            for k, v in {
                "error_type": self.error_type,
                "status_code": self.status_code,
                "request_id": self.request_id,
                "error_code": self.error_code,
                "error_param": self.error_param,
            }.items()
            if v is not None
        }


# =============================================================================
# AI Service Exceptions
# =============================================================================

class AIServiceError(Exception):
    """
    Base class for AI service errors.

    Carries an AIErrorInfo so callers can tell transient from fatal failures.
    """

    def __init__(self, message: str, info: Optional[AIErrorInfo] = None):
        super().__init__(message)
        self.message = message
        self.info = info or AIErrorInfo(error_type="unknown", message=message)

    @property
    def status_code(self) -> Optional[int]:
        return self.info.status_code

    @property
    def request_id(self) -> Optional[str]:
        return self.info.request_id

    @property
    def transient(self) -> bool:
        return self.info.transient

    def __str__(self) -> str:
        parts = [self.message]
        if self.info.status_code:
            parts.append(f"[status={self.info.status_code}]")
        if self.info.request_id:
            parts.append(f"[request_id={self.info.request_id}]")
        return " ".join(parts)


class GenerationServiceError(AIServiceError):
    """Answer generation failed."""
    pass


class RetryExhaustedError(GenerationServiceError):
    """A transient failure persisted through every allowed attempt."""

    def __init__(self, message: str, info: Optional[AIErrorInfo] = None, attempts: int = 0):
        super().__init__(message, info)
        self.attempts = attempts

    @property
    def transient(self) -> bool:
        return True


class FileSearchServiceError(AIServiceError):
    """Document-search store operation failed."""
    pass


# =============================================================================
# Error Classification
# =============================================================================

def _extract_error_message(e: APIStatusError) -> Optional[str]:
    """Pull a readable message out of an OpenAI error body."""
    if not e.body:
        return None

    if isinstance(e.body, dict):
        error = e.body.get("error", {})
        if isinstance(error, dict):
            return error.get("message")
        if isinstance(error, str):
            return error
        # Non-standard bodies: {'code': -1, 'msg': 'xxx'}
        msg = e.body.get("msg") or e.body.get("message")
        if msg:
            return msg

    return None


def classify_openai_error(e: Exception) -> AIErrorInfo:
    """
    Classify an OpenAI SDK exception into structured error info.

    Args:
        e: Exception raised by the OpenAI SDK

    Returns:
        AIErrorInfo
    """
    if isinstance(e, OpenAIRateLimitError):
        return AIErrorInfo(
            error_type="rate_limit",
            message="Model API rate limit exceeded, try again later",
            status_code=e.status_code,
            request_id=getattr(e, "request_id", None),
            error_code=getattr(e, "code", None),
            raw_body=e.body,
        )

    if isinstance(e, (OpenAIAuthError, OpenAIPermissionError)):
        return AIErrorInfo(
            error_type="authentication",
            message="Model API key is invalid or not authorized",
            status_code=e.status_code,
            request_id=getattr(e, "request_id", None),
            error_code=getattr(e, "code", None),
            raw_body=e.body,
        )

    if isinstance(e, BadRequestError):
        msg = _extract_error_message(e) or "Malformed request"
        return AIErrorInfo(
            error_type="bad_request",
            message=msg,
            status_code=e.status_code,
            request_id=getattr(e, "request_id", None),
            error_code=getattr(e, "code", None),
            error_param=getattr(e, "param", None),
            raw_body=e.body,
        )

    if isinstance(e, OpenAINotFoundError):
        return AIErrorInfo(
            error_type="not_found",
            message="Model or vector store not found, check configuration",
            status_code=e.status_code,
            request_id=getattr(e, "request_id", None),
            error_code=getattr(e, "code", None),
            raw_body=e.body,
        )

    if isinstance(e, InternalServerError):
        msg = _extract_error_message(e) or "Model service temporarily unavailable"
        return AIErrorInfo(
            error_type="server_error",
            message=msg,
            status_code=e.status_code,
            request_id=getattr(e, "request_id", None),
            error_code=getattr(e, "code", None),
            raw_body=e.body,
        )

    # APITimeoutError subclasses APIConnectionError, check it first
    if isinstance(e, APITimeoutError):
        return AIErrorInfo(
            error_type="timeout",
            message="Model request timed out",
        )

    if isinstance(e, APIConnectionError):
        return AIErrorInfo(
            error_type="connection",
            message="Could not connect to the model service",
        )

    if isinstance(e, APIStatusError):
        msg = _extract_error_message(e) or f"API error (HTTP {e.status_code})"
        return AIErrorInfo(
            error_type="server_error" if e.status_code >= 500 else "api_error",
            message=msg,
            status_code=e.status_code,
            request_id=getattr(e, "request_id", None),
            error_code=getattr(e, "code", None),
            raw_body=e.body,
        )

    if isinstance(e, OpenAIAPIError):
        return AIErrorInfo(
            error_type="api_error",
            message=str(e) or "Model API call failed",
            error_code=getattr(e, "code", None),
            raw_body=getattr(e, "body", None),
        )

    return AIErrorInfo(
        error_type="unknown",
        message=f"{type(e).__name__}: {str(e)}" if str(e) else type(e).__name__,
    )


def is_transient_error(e: BaseException) -> bool:
    """
    True when a failure is worth retrying.

    AIServiceError instances use their classified info; raw SDK exceptions are
    classified on the fly. Anything else is fatal.
    """
    if isinstance(e, AIServiceError):
        return e.transient
    if isinstance(e, OpenAIAPIError):
        return classify_openai_error(e).transient
    return False


# =============================================================================
# Error Handling Utilities
# =============================================================================

E = TypeVar("E", bound=AIServiceError)


def handle_openai_error(
    e: Exception,
    operation: str,
    error_class: Type[E] = AIServiceError,
    context: Optional[Dict[str, Any]] = None,
) -> E:
    """
    Classify, log and wrap an OpenAI SDK exception.

    Args:
        e: Original exception
        operation: Operation label (e.g. "answer generation")
        error_class: Exception class to return
        context: Extra log context

    Returns:
        error_class instance

    Usage:
        try:
            response = await client.responses.create(...)
        except Exception as e:
            raise handle_openai_error(e, "answer generation", GenerationServiceError)
    """
    info = classify_openai_error(e)

    log_data = info.to_log_dict()
    if context:
        log_data.update(context)

    log_msg = f"{operation} failed: {info.message}"
    if log_data:
        log_msg += f" | {log_data}"

    if info.transient:
        logger.warning(log_msg)
    else:
        logger.error(log_msg)

    return error_class(f"{operation} failed: {info.message}", info=info)


def format_error_message(e: Exception, default: str = "") -> str:
    """
    Format an exception as a user-facing message.

    Args:
        e: Exception
        default: Fallback label when nothing else can be extracted

    Returns:
        Message string
    """
    if isinstance(e, AIServiceError):
        return e.message

    if isinstance(e, OpenAIAPIError):
        info = classify_openai_error(e)
        return info.message

    msg = str(e)
    if msg:
        return f"{type(e).__name__}: {msg}"

    if default:
        return f"{default} ({type(e).__name__})"

    return type(e).__name__
