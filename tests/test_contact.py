"""
Tests for Contact Relay API

Tests submission outcomes, redirects, rate limiting, status reporting and the
HTTP error envelope.
"""

import pytest
from fastapi.testclient import TestClient

from api.contact_app import create_app
from core.policy import AccessKeyMode, Policy


def test_submit_valid_form(client, valid_submission, mailer):
    """Test successful submission relays one email"""
    response = client.post("/api/submit", json=valid_submission)

    assert response.status_code == 200
    assert response.json() == {"message": "Form submitted successfully!"}
    assert len(mailer.sent) == 1
    assert mailer.sent[0]["to"] == "inbox@example.org"


def test_get_submit_redirects_to_status(client):
    """Test that reads on the submit endpoint go to the status view"""
    response = client.get("/api/submit", follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "/api/status"


def test_redirect_is_followed_to_status(client):
    response = client.get("/api/submit")

    assert response.status_code == 200
    assert response.json()["status"] == "OK"


@pytest.mark.parametrize("method", ["put", "delete", "patch"])
def test_other_methods_not_allowed(client, method):
    response = getattr(client, method)("/api/submit")

    assert response.status_code == 405
    assert response.json() == {"message": "Method not allowed"}


def test_field_errors_returned_as_list(client, valid_submission):
    """Test that every field error is returned at once"""
    payload = {**valid_submission, "from_name": "", "replyto": "not-an-email", "message": ""}

    response = client.post("/api/submit", json=payload)

    assert response.status_code == 400
    assert response.json()["message"] == [
        "From name must be between 1 and 100 characters.",
        "Reply-to email is invalid.",
        "message cannot be empty.",
    ]


def test_category_fields_required(client, valid_submission):
    payload = {**valid_submission, "selectedOption": "lawEnforcementContact"}

    response = client.post("/api/submit", json=payload)

    assert response.status_code == 400
    assert len(response.json()["message"]) == 2


def test_honeypot_spam_protection(client, valid_submission, mailer):
    """Test that the honeypot field rejects bots without detail"""
    response = client.post("/api/submit", json={**valid_submission, "botCheck": True})

    assert response.status_code == 400
    assert response.json() == {"message": "Invalid submission"}
    assert mailer.sent == []


def test_access_key_enforced(make_client, valid_submission):
    client = make_client(Policy(
        recipient="inbox@example.org",
        access_key_mode=AccessKeyMode.REQUIRED,
        access_key="s3cret",
    ))

    denied = client.post("/api/submit", json=valid_submission)
    allowed = client.post("/api/submit", json={**valid_submission, "accessKey": "s3cret"})

    assert denied.status_code == 403
    assert denied.json() == {"message": "Invalid access key."}
    assert allowed.status_code == 200


@pytest.mark.parametrize("content", [b"not json", b"", b"[1, 2]", b'"text"'])
def test_body_must_be_json_object(client, content):
    response = client.post(
        "/api/submit", content=content, headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert response.json() == {"message": "Request body must be a JSON object."}


def test_rate_limiting(client, valid_submission):
    """Test rate limiting prevents excessive submissions"""
    for _ in range(5):
        assert client.post("/api/submit", json=valid_submission).status_code == 200

    response = client.post("/api/submit", json=valid_submission)

    assert response.status_code == 429
    assert response.json() == {"message": "You can only submit once every 24 hours."}
    assert response.headers["retry-after"] == "86400"


def test_rate_limit_resets_after_window(client, valid_submission, clock):
    for _ in range(6):
        client.post("/api/submit", json=valid_submission)

    clock.advance(86400 + 1)

    assert client.post("/api/submit", json=valid_submission).status_code == 200


def test_rate_limit_keyed_on_forwarded_address(client, valid_submission):
    """Test that each forwarded client address gets its own quota"""
    first = {"X-Forwarded-For": "198.51.100.1"}
    second = {"X-Forwarded-For": "198.51.100.2"}

    for _ in range(5):
        client.post("/api/submit", json=valid_submission, headers=first)

    assert client.post("/api/submit", json=valid_submission, headers=first).status_code == 429
    assert client.post("/api/submit", json=valid_submission, headers=second).status_code == 200


def test_delivery_failure_is_generic(client, valid_submission, mailer):
    mailer.fail("535 5.7.8 Username and Password not accepted")

    response = client.post("/api/submit", json=valid_submission)

    assert response.status_code == 500
    assert response.json() == {"message": "Failed to send email."}
    assert "535" not in response.text


def test_status_reports_accepted_submissions(client, valid_submission):
    assert client.get("/api/status").json() == {
        "status": "OK",
        "submissionCount": 0,
        "message": "API is operational",
    }

    client.post("/api/submit", json=valid_submission)
    client.post("/api/submit", json={**valid_submission, "from_name": ""})
    client.post("/api/submit", json={**valid_submission, "botCheck": "on"})
    client.get("/api/submit")

    assert client.get("/api/status").json()["submissionCount"] == 1


def test_apps_do_not_share_state(make_client, policy, valid_submission):
    first = make_client(policy)
    second = make_client(policy)

    first.post("/api/submit", json=valid_submission)

    assert second.get("/api/status").json()["submissionCount"] == 0


def test_metrics_endpoint(client, valid_submission):
    client.post("/api/submit", json=valid_submission)

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "contact_relay_submissions_total" in response.text


def test_cors_preflight_for_allowed_origin(client):
    response = client.options(
        "/api/submit",
        headers={
            "Origin": "https://legaciesofmen.org",
            "Access-Control-Request-Method": "POST",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "https://legaciesofmen.org"


def test_unexpected_error_returns_generic_failure(policy, mailer, clock, valid_submission):
    app = create_app(policy=policy, mailer=mailer, clock=clock)

    def explode(*args, **kwargs):
        raise RuntimeError("pipeline defect")

    app.state.pipeline.handle = explode
    client = TestClient(app, raise_server_exceptions=False)

    response = client.post("/api/submit", json=valid_submission)

    assert response.status_code == 500
    assert response.json() == {"message": "Something went wrong. Please try again later."}


def test_head_submit_redirects_to_status(client):
    response = client.head("/api/submit", follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "/api/status"


def test_request_logs_bind_client_identity(client, valid_submission, monkeypatch):
    """Test that every request's log context carries the rate-limit identity"""
    bound = []
    monkeypatch.setattr("api.contact_app.bind_context", lambda **ctx: bound.append(ctx))

    client.post("/api/submit", json=valid_submission,
                headers={"X-Forwarded-For": "198.51.100.9"})

    assert bound == [{"client_id": "198.51.100.9"}]
