"""Custom exception classes and error handling utilities."""
from typing import Any, Dict, Optional
from fastapi import HTTPException, status
from loguru import logger


class ScenarioChatException(Exception):
    """Base exception for the application."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(ScenarioChatException):
    """Request rejected before any model call."""
    pass


class RateLimitError(ScenarioChatException):
    """Client exceeded its request budget for the current window."""
    pass


class SessionNotFoundError(ScenarioChatException):
    """Raised by paths that only operate on pre-existing sessions."""
    pass


class LLMServiceError(ScenarioChatException):
    """LLM service communication errors surfaced to the caller."""
    pass


class MalformedModelOutput(ScenarioChatException):
    """Model reply could not be decoded into the expected shape."""

    def __init__(self, message: str, raw: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.raw = raw


def handle_validation_error(error: ValidationError) -> HTTPException:
    """Handle validation errors."""
    logger.warning(f"Validation error: {error.message}")
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={
            "message": error.message,
            "details": error.details
        }
    )


def handle_rate_limit_error(error: RateLimitError) -> HTTPException:
    """Handle rate limit rejections."""
    logger.warning(f"Rate limited: {error.message}", **error.details)
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=error.message,
    )


def handle_session_not_found(error: SessionNotFoundError) -> HTTPException:
    """Handle lookups of unknown sessions."""
    logger.info(f"Session not found: {error.message}")
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=error.message
    )


def handle_llm_service_error(error: LLMServiceError) -> HTTPException:
    """Handle LLM service errors."""
    logger.error(f"LLM service error: {error.message}")
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="AI service is temporarily unavailable. Please try again later."
    )


def to_http_exception(error: ScenarioChatException) -> HTTPException:
    """Map a domain exception onto the matching HTTP error."""
    if isinstance(error, ValidationError):
        return handle_validation_error(error)
    if isinstance(error, RateLimitError):
        return handle_rate_limit_error(error)
    if isinstance(error, SessionNotFoundError):
        return handle_session_not_found(error)
    if isinstance(error, LLMServiceError):
        return handle_llm_service_error(error)
    logger.error(f"Unhandled application error: {error.message}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=error.message,
    )
