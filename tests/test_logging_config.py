"""Tests for the structured logging helpers."""

import structlog

from core.logging_config import bind_context, unbind_context


def test_request_context_is_removed_without_touching_service_context():
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service="contact-relay")

    bind_context(client_id="203.0.113.7")
    assert structlog.contextvars.get_contextvars() == {
        "service": "contact-relay",
        "client_id": "203.0.113.7",
    }

    unbind_context("client_id")
    assert structlog.contextvars.get_contextvars() == {"service": "contact-relay"}

    structlog.contextvars.clear_contextvars()
