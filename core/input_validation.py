"""
Submission Input Validation

Applies the policy's field rules to an untrusted submission body. The bot
check and the access-key check short-circuit with a single error; every other
rule is evaluated and all violations are collected, in this order:

1. bot check
2. access key (when required by policy)
3. sender name length
4. reply-to address (unless the policy fixes the reply address)
5. every other free-form string is non-empty (optional fields excepted) and
   every structured field parses
6. fields made mandatory by the selected category
"""

import hmac
import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from core.error_handling import RejectionReason, StructuredFieldError
from core.policy import AccessKeyMode, ConditionalFieldMode, Policy, ReplyAddressMode
from core.sanitizer import escape, is_email, is_empty, is_length_in_range
from core.structured_fields import parse_key_value_block

logger = logging.getLogger(__name__)

BOT_DETECTED_MESSAGE = "Invalid submission"
FORBIDDEN_MESSAGE = "Invalid access key."

_FALSE_STRINGS = frozenset({"", "false", "0", "off", "no"})


@dataclass
class ValidationOutcome:
    """Ordered list of errors; empty means the submission may proceed."""
    errors: List[str] = field(default_factory=list)
    reason: Optional[RejectionReason] = None

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @classmethod
    def short_circuit(cls, reason: RejectionReason, message: str) -> "ValidationOutcome":
        return cls(errors=[message], reason=reason)


def is_truthy(value: Any) -> bool:
    """Interpret a boolean-like form value (checkbox, JSON bool, number or text)."""
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return bool(value)


def is_missing(value: Any) -> bool:
    """Whether a conditional field counts as not supplied."""
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return is_empty(value)
    return False


def free_form_fields(request: Mapping[str, Any], policy: Policy) -> List[str]:
    """Names of the request fields that are neither distinguished nor transport-only."""
    excluded = policy.fields.distinguished() | policy.transport_fields
    return [key for key in request if key not in excluded]


def _check_access_key(request: Mapping[str, Any], policy: Policy) -> bool:
    supplied = request.get(policy.fields.access_key)
    if not isinstance(supplied, str) or not supplied:
        return False
    return hmac.compare_digest(supplied.encode("utf-8"), policy.access_key.encode("utf-8"))


def validate(request: Mapping[str, Any], policy: Policy) -> ValidationOutcome:
    """
    Validate a submission body against the active policy.

    Args:
        request: Parsed submission body
        policy: Active policy bundle

    Returns:
        ValidationOutcome. A short-circuit rejection carries its reason;
        field errors carry ``RejectionReason.VALIDATION_FAILED``.
    """
    names = policy.fields

    if is_truthy(request.get(names.bot_check)):
        return ValidationOutcome.short_circuit(
            RejectionReason.BOT_DETECTED, BOT_DETECTED_MESSAGE
        )

    if policy.access_key_mode is AccessKeyMode.REQUIRED and not _check_access_key(request, policy):
        return ValidationOutcome.short_circuit(RejectionReason.FORBIDDEN, FORBIDDEN_MESSAGE)

    errors: List[str] = []

    if not is_length_in_range(request.get(names.name),
                              policy.name_min_length, policy.name_max_length):
        errors.append(
            f"From name must be between {policy.name_min_length} "
            f"and {policy.name_max_length} characters."
        )

    if policy.reply_address_mode is ReplyAddressMode.USER_SUPPLIED:
        if not is_email(request.get(names.reply_to)):
            errors.append("Reply-to email is invalid.")

    category = request.get(names.category)
    conditional = policy.required_fields_for(category)

    for key in free_form_fields(request, policy):
        if key in conditional:
            continue
        value = request[key]

        if isinstance(value, str) and is_empty(escape(value)):
            if key not in policy.optional_fields:
                errors.append(f"{key} cannot be empty.")
            continue

        if key in policy.structured_fields:
            errors.extend(_check_structured(key, value))

    if policy.conditional_field_mode is ConditionalFieldMode.REQUIRE:
        for key in conditional:
            if is_missing(request.get(key)):
                errors.append(f"{key} is required when {category} is selected.")

    if errors:
        logger.debug(f"Submission failed validation with {len(errors)} error(s)")
        return ValidationOutcome(errors=errors, reason=RejectionReason.VALIDATION_FAILED)

    return ValidationOutcome()


def _check_structured(key: str, value: Any) -> List[str]:
    if isinstance(value, dict):
        return []
    if not isinstance(value, str):
        return [f"{key} must be a key:value text block."]
    try:
        parse_key_value_block(value, field_name=key)
    except StructuredFieldError as e:
        return [e.message]
    return []
