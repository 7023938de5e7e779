"""
Centralized Error Handling for the Contact Relay

Provides the exception hierarchy, the rejection taxonomy used by the
submission pipeline, and the FastAPI exception handlers that keep every
failure inside a response value.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Something went wrong. Please try again later."


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class ContactRelayError(Exception):
    """Base exception for all contact relay errors."""

    def __init__(self, message: str, component: str = "unknown",
                 context: Optional[Dict[str, Any]] = None):
        """Initialize exception with metadata.

        Args:
            message: Error message
            component: Component where error occurred
            context: Additional context data
        """
        self.message = message
        self.component = component
        self.context = context or {}
        self.timestamp = datetime.now()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to structured log format."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "component": self.component,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


class DeliveryError(ContactRelayError):
    """Raised when the mail transport fails to hand off a message."""
    pass


class StructuredFieldError(ContactRelayError):
    """Raised when a key:value text block is malformed."""
    pass


class PolicyConfigurationError(ContactRelayError):
    """Raised when the policy bundle cannot be loaded or is invalid."""
    pass


# ============================================================================
# Rejection Taxonomy
# ============================================================================

class RejectionReason(Enum):
    """Terminal reasons a submission does not reach delivery."""
    BOT_DETECTED = "bot_detected"
    FORBIDDEN = "forbidden"
    RATE_LIMITED = "rate_limited"
    VALIDATION_FAILED = "validation_failed"
    DELIVERY_FAILED = "delivery_failed"

    @property
    def status_code(self) -> int:
        """Default HTTP status for this reason."""
        return _STATUS_CODES[self]


_STATUS_CODES = {
    RejectionReason.BOT_DETECTED: 400,
    RejectionReason.FORBIDDEN: 403,
    RejectionReason.RATE_LIMITED: 429,
    RejectionReason.VALIDATION_FAILED: 400,
    RejectionReason.DELIVERY_FAILED: 500,
}


@dataclass
class ErrorContext:
    """Structured representation of an error occurrence."""
    error_type: str
    component: str
    message: str
    context_data: Dict[str, Any] = None
    timestamp: datetime = None

    def __post_init__(self):
        if self.context_data is None:
            self.context_data = {}
        if self.timestamp is None:
            self.timestamp = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to structured log format."""
        return {
            "error_type": self.error_type,
            "component": self.component,
            "message": self.message,
            "context": self.context_data,
            "timestamp": self.timestamp.isoformat(),
        }


def classify_error(exc: Exception, component: str,
                   context: Optional[Dict[str, Any]] = None) -> ErrorContext:
    """
    Build structured error context for an exception.

    Args:
        exc: The exception to classify
        component: Name of the component where error occurred
        context: Optional context data about the error

    Returns:
        ErrorContext with classification and metadata
    """
    context_data = dict(context or {})
    if isinstance(exc, ContactRelayError):
        component = exc.component if exc.component != "unknown" else component
        context_data.update(exc.context)

    return ErrorContext(
        error_type=exc.__class__.__name__,
        component=component,
        message=str(exc),
        context_data=context_data,
    )


# ============================================================================
# FastAPI Boundary Handlers
# ============================================================================

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Reshape framework HTTP errors into the relay's message envelope."""
    message = exc.detail
    if exc.status_code == 405:
        message = "Method not allowed"
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": message},
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Answer malformed request envelopes without leaking parser detail."""
    return JSONResponse(
        status_code=400,
        content={"message": "Request body must be a JSON object."},
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    """Log unexpected defects and return a generic failure."""
    error_ctx = classify_error(exc, "api", {"path": request.url.path})
    logger.error(
        f"Unhandled error in {error_ctx.component}: {error_ctx.message}",
        extra={k: v for k, v in error_ctx.to_dict().items() if k != "message"},
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"message": GENERIC_FAILURE_MESSAGE})


def register_exception_handlers(app: FastAPI) -> None:
    """Install the relay's exception handlers on an application."""
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
