"""Error taxonomy shared by the server and client engines.

Every error carries an HTTP status code and a machine-readable code so the
FastAPI layer can render it and the remote client can map a response back
to the same class.
"""
import asyncio
from enum import Enum
from typing import Any, Dict, Optional, Type

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import httpx
import structlog

logger = structlog.get_logger()


class ChatSyncError(Exception):
    """Base exception for ChatSync."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(ChatSyncError):
    """Malformed input or a disallowed field change."""
    status_code = 400
    code = "validation_error"


class NotFoundError(ChatSyncError):
    status_code = 404
    code = "not_found"


class ForbiddenError(ChatSyncError):
    """Caller does not own the resource."""
    status_code = 403
    code = "forbidden"


class ConflictError(ChatSyncError):
    status_code = 409
    code = "conflict"


class InvalidStateError(ChatSyncError):
    """Operation not allowed in the resource's current state."""
    status_code = 409
    code = "invalid_state"


class ProviderUnavailableError(ChatSyncError):
    """AI provider failed, timed out, or is unreachable."""
    status_code = 503
    code = "provider_unavailable"


class ConnectivityError(ChatSyncError):
    """The authoritative backend cannot be reached from the client."""
    status_code = 503
    code = "connectivity_error"


class UnsupportedOperationError(ChatSyncError):
    status_code = 501
    code = "unsupported_operation"


ERRORS_BY_CODE: Dict[str, Type[ChatSyncError]] = {
    cls.code: cls
    for cls in (
        ChatSyncError,
        ValidationError,
        NotFoundError,
        ForbiddenError,
        ConflictError,
        InvalidStateError,
        ProviderUnavailableError,
        ConnectivityError,
        UnsupportedOperationError,
    )
}


class FailureCategory(str, Enum):
    """Categories of AI dispatch failures."""
    UNAVAILABLE = "unavailable"
    CONNECTION_REFUSED = "connection_refused"
    TIMEOUT = "timeout"
    MODEL_NOT_FOUND = "model_not_found"
    GENERIC = "generic"


FAILURE_MESSAGES = {
    FailureCategory.UNAVAILABLE: (
        "The local AI service (Ollama) is not available. "
        "Make sure it is running on port 11434."
    ),
    FailureCategory.CONNECTION_REFUSED: (
        "Could not connect to the AI service. Check that it is running and reachable."
    ),
    FailureCategory.TIMEOUT: (
        "The AI service took too long to respond. Please try again."
    ),
    FailureCategory.MODEL_NOT_FOUND: (
        "The requested model was not found. Check that it is installed or choose another model."
    ),
    FailureCategory.GENERIC: (
        "The AI service failed to produce a response. Please try again."
    ),
}


TIMEOUT_ERRORS = (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException)


def _is_timeout(error: BaseException) -> bool:
    """Walk the cause chain looking for a timeout."""
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, TIMEOUT_ERRORS):
            return True
        if isinstance(current, ChatSyncError) and "timeout_seconds" in current.details:
            return True
        current = current.__cause__ or current.__context__
    return False


def classify_failure(error: BaseException) -> FailureCategory:
    """
    Map a dispatch failure to a category.

    Timeouts are recognized by type first. Otherwise the message is
    inspected; the service name match is case-sensitive so a lowercase
    provider id in a message does not count as the service being down.
    """
    if _is_timeout(error):
        return FailureCategory.TIMEOUT

    text = str(error)
    lowered = text.lower()

    if "Ollama" in text or "11434" in text:
        return FailureCategory.UNAVAILABLE

    if "connection refused" in lowered or "econnrefused" in lowered:
        return FailureCategory.CONNECTION_REFUSED

    if "timeout" in lowered or "timed out" in lowered:
        return FailureCategory.TIMEOUT

    if "model" in lowered and "not found" in lowered:
        return FailureCategory.MODEL_NOT_FOUND

    return FailureCategory.GENERIC


def describe_failure(error: BaseException) -> str:
    """Human-readable explanation of a dispatch failure."""
    return FAILURE_MESSAGES[classify_failure(error)]


def error_from_payload(status_code: int, payload: Any) -> ChatSyncError:
    """Rebuild a taxonomy error from an HTTP error response."""
    code = None
    message = f"Request failed with status {status_code}"
    details: Dict[str, Any] = {}

    if isinstance(payload, dict):
        code = payload.get("error")
        detail = payload.get("detail")
        if isinstance(detail, str):
            message = detail
        elif detail is not None:
            details["detail"] = detail
        details.update(payload.get("details") or {})

    if code in ERRORS_BY_CODE:
        return ERRORS_BY_CODE[code](message, details)

    if status_code in (400, 422):
        return ValidationError(message, details)
    if status_code in (401, 403):
        return ForbiddenError(message, details)
    if status_code == 404:
        return NotFoundError(message, details)
    if status_code == 409:
        return ConflictError(message, details)
    if status_code >= 500:
        return ConnectivityError(message, details)
    return ChatSyncError(message, details)


async def chatsync_error_handler(request: Request, exc: ChatSyncError) -> JSONResponse:
    """Render a ChatSyncError as a JSON response."""
    if exc.status_code >= 500:
        logger.error("request_error", error=exc.message, error_type=exc.code, path=request.url.path)
    else:
        logger.info("request_rejected", error=exc.message, error_type=exc.code, path=request.url.path)

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.code, "details": exc.details},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Attach taxonomy error handlers to the app."""
    app.add_exception_handler(ChatSyncError, chatsync_error_handler)
