"""Pytest configuration and fixtures for the contact relay test suite."""
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

# Ensure project modules are importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from api.contact_app import create_app
from core.error_handling import DeliveryError
from core.mailer import Mailer
from core.pipeline import SubmissionPipeline
from core.policy import Policy
from core.rate_limiter import FixedWindowRateLimiter
from core.status import StatusCounter


# ============================================================================
# COLLABORATOR DOUBLES
# ============================================================================

class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingMailer(Mailer):
    """Captures sent messages; can be switched into failure mode."""

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []
        self.fail_with: Optional[Exception] = None

    def send(self, to_address, from_display, subject, html_body, reply_to=None):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append({
            "to": to_address,
            "from": from_display,
            "subject": subject,
            "html": html_body,
            "reply_to": reply_to,
        })

    def fail(self, message: str = "535 authentication failed") -> None:
        self.fail_with = DeliveryError(message, component="mailer")


# ============================================================================
# POLICY AND PIPELINE FIXTURES
# ============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def policy():
    """Canonical policy with a configured recipient and a small quota."""
    return Policy(recipient="inbox@example.org", max_requests=5)


@pytest.fixture
def make_pipeline(clock, mailer):
    """Factory building an isolated pipeline for a given policy."""
    def _make(policy: Policy) -> SubmissionPipeline:
        limiter = FixedWindowRateLimiter(
            window_seconds=policy.window_seconds,
            max_requests=policy.max_requests,
            max_entries=policy.max_tracked_clients,
            clock=clock,
        )
        return SubmissionPipeline(policy, limiter, StatusCounter(), mailer)
    return _make


@pytest.fixture
def pipeline(make_pipeline, policy):
    return make_pipeline(policy)


@pytest.fixture
def valid_submission():
    """A submission that passes every rule of the canonical policy."""
    return {
        "from_name": "Jane Doe",
        "replyto": "jane@example.com",
        "botCheck": False,
        "Origin": "Legacies Website",
        "message": "I would like to share my grandfather's story.",
    }


# ============================================================================
# HTTP FIXTURES
# ============================================================================

@pytest.fixture
def make_client(clock, mailer):
    """Factory building a TestClient around an isolated app."""
    def _make(policy: Policy) -> TestClient:
        return TestClient(create_app(policy=policy, mailer=mailer, clock=clock))
    return _make


@pytest.fixture
def client(make_client, policy):
    return make_client(policy)
