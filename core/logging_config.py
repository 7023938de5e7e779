"""
Contact Relay Structured Logging Module
JSON-based structured logging for request and submission events
"""

import logging
import sys
from typing import Optional

import structlog
from pythonjsonlogger import jsonlogger

from core.secrets import get_secret

# ============================================================================
# STRUCTURED LOGGING CONFIGURATION
# ============================================================================

def setup_json_logging(
    log_level: str = "INFO",
    service_name: str = "contact-relay",
    environment: Optional[str] = None
):
    """
    Setup JSON structured logging for production environments

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        service_name: Name of the service
        environment: Environment name (development, staging, production)
    """
    environment = environment or get_secret("ENVIRONMENT", "development")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, log_level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    json_handler = logging.StreamHandler(sys.stdout)
    json_formatter = jsonlogger.JsonFormatter(
        fmt='%(asctime)s %(levelname)s %(name)s %(message)s',
    )
    json_handler.setFormatter(json_formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level))
    root_logger.handlers.clear()
    root_logger.addHandler(json_handler)

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=environment,
        version=get_secret("APP_VERSION", "1.0.0")
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """
    Get a structured logger instance

    Args:
        name: Logger name (typically __name__)
    """
    return structlog.get_logger(name)


# ============================================================================
# EVENT HELPERS
# ============================================================================

def log_request(
    logger: structlog.BoundLogger,
    method: str,
    endpoint: str,
    status: int,
    duration_ms: float,
    **extra
):
    """
    Log HTTP request with structured data

    Args:
        logger: Structlog logger instance
        method: HTTP method
        endpoint: Request endpoint
        status: HTTP status code
        duration_ms: Request duration in milliseconds
        **extra: Additional context fields
    """
    logger.info(
        "http_request",
        method=method,
        endpoint=endpoint,
        status=status,
        duration_ms=round(duration_ms, 2),
        **extra
    )


def log_error(
    logger: structlog.BoundLogger,
    error: Exception,
    context: str,
    **extra
):
    """
    Log error with full context and stack trace

    Args:
        logger: Structlog logger instance
        error: Exception instance
        context: Context description
        **extra: Additional context fields
    """
    logger.error(
        context,
        error_type=type(error).__name__,
        error_message=str(error),
        exc_info=error,
        **extra
    )


def log_submission_outcome(
    logger: structlog.BoundLogger,
    outcome: str,
    client_id: str,
    reason: Optional[str] = None,
    **extra
):
    """
    Log the terminal outcome of a submission

    Args:
        logger: Structlog logger instance
        outcome: Outcome kind (accepted, rejected, redirected, delivered, delivery_failed)
        client_id: Client identity used for rate limiting
        reason: Rejection reason, if any
        **extra: Additional context fields
    """
    level = "info" if reason is None else "warning"
    getattr(logger, level)(
        "submission_outcome",
        outcome=outcome,
        client_id=client_id,
        reason=reason,
        **extra
    )


# ============================================================================
# CONTEXT UTILITIES
# ============================================================================

def bind_context(**context):
    """Add context to all future log entries in the current request"""
    structlog.contextvars.bind_contextvars(**context)


def unbind_context(*keys):
    """Remove request-scoped keys, keeping the service-wide context"""
    structlog.contextvars.unbind_contextvars(*keys)


# Initialize on import
if get_secret("ENABLE_JSON_LOGGING", "").lower() in ("1", "true", "yes"):
    setup_json_logging(get_secret("LOG_LEVEL", "INFO").upper())
