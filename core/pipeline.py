"""
Submission Pipeline

Turns an untrusted submission into exactly one terminal outcome:

- a read on the submit endpoint is redirected to the status view;
- a write first consumes rate-limit quota, then is validated;
- a valid write is normalized (escaped, defaulted, structured fields parsed,
  transport-only fields stripped), rendered, counted and handed to delivery.

The status counter is incremented only when a submission is accepted, and
delivery never re-validates or re-counts.
"""

import html
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from core.error_handling import DeliveryError, RejectionReason
from core.input_validation import free_form_fields, is_missing, validate
from core.logging_config import get_logger, log_error, log_submission_outcome
from core.mailer import Mailer, format_sender
from core.metrics import (
    DELIVERIES_TOTAL,
    DELIVERY_LATENCY,
    RATE_LIMIT_BLOCKS_TOTAL,
    SUBMISSIONS_TOTAL,
)
from core.policy import ConditionalFieldMode, Policy, ReplyAddressMode
from core.rate_limiter import FixedWindowRateLimiter
from core.sanitizer import escape, escape_value
from core.status import StatusCounter
from core.structured_fields import parse_key_value_block

logger = get_logger(__name__)

READ_METHODS = frozenset({"GET", "HEAD"})
STATUS_PATH = "/api/status"

SUCCESS_MESSAGE = "Form submitted successfully!"
DELIVERY_FAILED_MESSAGE = "Failed to send email."
BODY_NOT_OBJECT_MESSAGE = "Request body must be a JSON object."


class Outcome(Enum):
    REDIRECTED = "redirected"
    REJECTED = "rejected"
    ACCEPTED = "accepted"
    DELIVERED = "delivered"
    DELIVERY_FAILED = "delivery_failed"


@dataclass(frozen=True)
class NormalizedSubmission:
    """Validated, escaped and defaulted submission ready for rendering.

    ``reply_to`` is a validated address used only in mail headers, so it is
    kept verbatim; every other string is HTML-escaped.
    """
    sender_name: str
    reply_to: str
    origin: str
    category: Optional[str]
    fields: Dict[str, Any]


@dataclass
class PipelineResult:
    """Terminal outcome of one pipeline invocation."""
    outcome: Outcome
    status_code: int
    reason: Optional[RejectionReason] = None
    errors: List[str] = field(default_factory=list)
    submission: Optional[NormalizedSubmission] = None
    subject: Optional[str] = None
    body: Optional[str] = None
    location: Optional[str] = None
    retry_after: int = 0
    field_errors: bool = False

    @property
    def message(self) -> Any:
        """Caller-facing message: the error list for field errors, else one string."""
        if self.field_errors:
            return list(self.errors)
        if self.errors:
            return self.errors[0]
        return SUCCESS_MESSAGE


def header_safe(text: str) -> str:
    """Collapse whitespace (including CR/LF) so text can sit in a mail header."""
    return " ".join(text.split())


def build_subject(sender_name: str, origin: str) -> str:
    return f"Someone from the **{header_safe(origin)}** named {header_safe(sender_name)} is trying to reach us"


def render_body(submission: NormalizedSubmission, policy: Policy) -> str:
    """Render the HTML email body: a banner followed by the submitted fields."""
    category_line = ""
    if submission.category:
        category_line = f'\n        <p style="color: #555;">Selected option: {submission.category}</p>'

    return f"""
    <div style="padding: 20px; background-color: #f4f4f4; text-align: center;">
        <h1 style="color: orange;">{escape(policy.form_title)}</h1>
        <p style="color: #555;">Thank you for reaching out! Below are the details of your submission:</p>{category_line}
    </div>
    <div style="padding: 20px;">
        <pre>{json.dumps(submission.fields, indent=2, ensure_ascii=False)}</pre>
    </div>
    """


class SubmissionPipeline:
    """Orchestrates admission, validation, normalization and delivery.

    All mutable state (rate-limit table, status counter) is owned by the
    objects passed in, so each application or test gets its own.
    """

    def __init__(
        self,
        policy: Policy,
        rate_limiter: FixedWindowRateLimiter,
        status_counter: StatusCounter,
        mailer: Optional[Mailer] = None,
    ):
        self.policy = policy
        self.rate_limiter = rate_limiter
        self.status_counter = status_counter
        self.mailer = mailer

    def handle(self, method: str, body: Any, client_id: str,
               now: Optional[float] = None) -> PipelineResult:
        """
        Decide the outcome of one request without delivering it.

        Args:
            method: HTTP method of the request
            body: Parsed request body
            client_id: Client identity for rate limiting
            now: Current time, for simulated clocks

        Returns:
            PipelineResult that is REDIRECTED, REJECTED or ACCEPTED
        """
        if method.upper() in READ_METHODS:
            SUBMISSIONS_TOTAL.labels(outcome=Outcome.REDIRECTED.value).inc()
            return PipelineResult(Outcome.REDIRECTED, 302, location=STATUS_PATH)

        decision = self.rate_limiter.admit(client_id, now)
        if not decision.allowed:
            RATE_LIMIT_BLOCKS_TOTAL.inc()
            return self._reject(
                client_id, RejectionReason.RATE_LIMITED,
                [self.policy.rate_limit_message], retry_after=decision.retry_after,
            )

        if not isinstance(body, Mapping):
            return self._reject(client_id, RejectionReason.VALIDATION_FAILED,
                                [BODY_NOT_OBJECT_MESSAGE])

        outcome = validate(body, self.policy)
        if not outcome.is_valid:
            return self._reject(client_id, outcome.reason, outcome.errors,
                                field_errors=outcome.reason is RejectionReason.VALIDATION_FAILED,
                                fields=sorted(body.keys()))

        submission = self.normalize(body)
        result = PipelineResult(
            Outcome.ACCEPTED,
            200,
            submission=submission,
            subject=build_subject(html.unescape(submission.sender_name),
                                  html.unescape(submission.origin)),
            body=render_body(submission, self.policy),
        )

        total = self.status_counter.increment()
        SUBMISSIONS_TOTAL.labels(outcome=Outcome.ACCEPTED.value).inc()
        log_submission_outcome(logger, Outcome.ACCEPTED.value, client_id,
                               origin=submission.origin, submission_count=total)
        return result

    def normalize(self, body: Mapping[str, Any]) -> NormalizedSubmission:
        """Escape, default and strip a validated submission body."""
        policy = self.policy
        names = policy.fields

        if policy.reply_address_mode is ReplyAddressMode.FIXED:
            reply_to = policy.fixed_reply_address
        else:
            reply_to = body[names.reply_to]

        origin = body.get(names.origin)
        if not isinstance(origin, str) or not origin.strip():
            origin = policy.default_origin

        category = body.get(names.category)
        category = escape(category) if isinstance(category, str) else None

        fields: Dict[str, Any] = {}
        for key in free_form_fields(body, policy):
            value = body[key]
            if key in policy.structured_fields and isinstance(value, str) and value.strip():
                value = parse_key_value_block(value, field_name=key)
            fields[escape(key)] = escape_value(value)

        if policy.conditional_field_mode is ConditionalFieldMode.PLACEHOLDER:
            for key in policy.required_fields_for(body.get(names.category)):
                if is_missing(body.get(key)):
                    fields[escape(key)] = escape(policy.placeholder)

        return NormalizedSubmission(
            sender_name=escape(body[names.name]),
            reply_to=reply_to,
            origin=escape(origin),
            category=category,
            fields=fields,
        )

    def deliver(self, result: PipelineResult) -> PipelineResult:
        """
        Hand an accepted result to the mailer.

        Non-accepted results are returned unchanged. Transport detail is
        logged; the caller only sees a generic failure message.
        """
        if result.outcome is not Outcome.ACCEPTED:
            return result

        submission = result.submission
        try:
            if self.mailer is None or not self.policy.recipient:
                raise DeliveryError("Mail delivery is not configured", component="pipeline")
            with DELIVERY_LATENCY.time():
                self.mailer.send(
                    self.policy.recipient,
                    format_sender(html.unescape(submission.sender_name), submission.reply_to),
                    result.subject,
                    result.body,
                    reply_to=submission.reply_to,
                )
        except Exception as e:
            DELIVERIES_TOTAL.labels(result="failed").inc()
            log_error(logger, e, "delivery_failed", origin=submission.origin)
            return PipelineResult(
                Outcome.DELIVERY_FAILED,
                RejectionReason.DELIVERY_FAILED.status_code,
                reason=RejectionReason.DELIVERY_FAILED,
                errors=[DELIVERY_FAILED_MESSAGE],
                submission=submission,
                subject=result.subject,
                body=result.body,
            )

        DELIVERIES_TOTAL.labels(result="sent").inc()
        logger.info("delivery_succeeded", origin=submission.origin)
        return PipelineResult(
            Outcome.DELIVERED,
            200,
            submission=submission,
            subject=result.subject,
            body=result.body,
        )

    def process(self, method: str, body: Any, client_id: str,
                now: Optional[float] = None) -> PipelineResult:
        """Run ``handle`` and deliver the result when it is accepted."""
        return self.deliver(self.handle(method, body, client_id, now))

    def _reject(self, client_id: str, reason: RejectionReason, errors: List[str],
                retry_after: int = 0, field_errors: bool = False,
                **extra) -> PipelineResult:
        status_code = reason.status_code
        if reason is RejectionReason.BOT_DETECTED:
            status_code = self.policy.bot_rejection_status

        SUBMISSIONS_TOTAL.labels(outcome=reason.value).inc()
        log_submission_outcome(logger, Outcome.REJECTED.value, client_id,
                               reason=reason.value, **extra)
        return PipelineResult(
            Outcome.REJECTED,
            status_code,
            reason=reason,
            errors=list(errors),
            retry_after=retry_after,
            field_errors=field_errors,
        )
