"""
Submission Policy

A deployment's policy bundle: which optional rules, quotas and field
overrides are active. Observed deployments differ in quota, access-key
requirement, reply-address handling and how category-specific fields are
enforced; each of those is an enumerated option here rather than a separate
code path.

Defaults reproduce the canonical deployment: 1000 submissions per client per
24 hours, no access key, user-supplied reply address, category fields
mandatory.
"""

import logging
import os
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from config.config_loader import find_config_file, load_config_with_secrets
from core.error_handling import PolicyConfigurationError
from core.secrets import describe_setting, get_secret

logger = logging.getLogger(__name__)


class AccessKeyMode(str, Enum):
    DISABLED = "disabled"
    REQUIRED = "required"


class ReplyAddressMode(str, Enum):
    USER_SUPPLIED = "user_supplied"
    FIXED = "fixed"


class ConditionalFieldMode(str, Enum):
    """How fields required by a selected category are enforced."""
    REQUIRE = "require"
    PLACEHOLDER = "placeholder"


class FieldNames(BaseModel):
    """Wire names of the distinguished request fields."""
    model_config = ConfigDict(frozen=True)

    name: str = "from_name"
    reply_to: str = "replyto"
    bot_check: str = "botCheck"
    origin: str = "Origin"
    category: str = "selectedOption"
    sub_category: str = "selectedSubOption"
    access_key: str = "accessKey"

    def distinguished(self) -> FrozenSet[str]:
        return frozenset(
            {self.name, self.reply_to, self.bot_check, self.origin,
             self.category, self.sub_category, self.access_key}
        )


class CategoryRule(BaseModel):
    """Fields that become mandatory when a category is selected."""
    model_config = ConfigDict(frozen=True)

    required_fields: Tuple[str, ...]


DEFAULT_CATEGORY_RULES = {
    "lawEnforcementContact": CategoryRule(
        required_fields=("lawEnforcementName", "lawEnforcementAgency"),
    ),
    "pressReleasesAndBranding": CategoryRule(
        required_fields=("nameOfPress", "nameOfIndividual", "certifyRepresentation"),
    ),
}

DEFAULT_CORS_ORIGINS = [
    "https://legaciesofmenv2.pages.dev",
    "https://legaciesofmen.org",
]


class Policy(BaseModel):
    """Validated policy bundle consumed by the submission pipeline."""
    model_config = ConfigDict(frozen=True)

    # Rate limiting
    window_seconds: int = Field(24 * 60 * 60, gt=0)
    max_requests: int = Field(1000, ge=0)
    max_tracked_clients: int = Field(10_000, gt=0)
    trusted_proxy_hops: int = Field(1, ge=0)
    rate_limit_message: str = "You can only submit once every 24 hours."

    # Access control
    access_key_mode: AccessKeyMode = AccessKeyMode.DISABLED
    access_key: Optional[str] = None
    bot_rejection_status: int = 400

    # Reply address
    reply_address_mode: ReplyAddressMode = ReplyAddressMode.USER_SUPPLIED
    fixed_reply_address: Optional[str] = None

    # Fields
    fields: FieldNames = FieldNames()
    name_min_length: int = 1
    name_max_length: int = 100
    optional_fields: FrozenSet[str] = frozenset({"optionalField"})
    transport_fields: FrozenSet[str] = frozenset(
        {"h-captcha-response", "g-recaptcha-response", "cf-turnstile-response"}
    )
    structured_fields: FrozenSet[str] = frozenset()
    category_rules: Dict[str, CategoryRule] = Field(
        default_factory=lambda: dict(DEFAULT_CATEGORY_RULES)
    )
    conditional_field_mode: ConditionalFieldMode = ConditionalFieldMode.REQUIRE
    placeholder: str = "Not provided"

    # Delivery
    recipient: Optional[str] = None
    default_origin: str = "Unknown Origin"
    form_title: str = "Legacies Of Men Form Submission Contact Area"

    # Transport surface
    cors_origins: List[str] = Field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))

    @model_validator(mode="after")
    def check_variants(self) -> "Policy":
        if self.access_key_mode is AccessKeyMode.REQUIRED and not self.access_key:
            raise ValueError("access_key_mode 'required' needs an access_key")
        if self.reply_address_mode is ReplyAddressMode.FIXED and not self.fixed_reply_address:
            raise ValueError("reply_address_mode 'fixed' needs a fixed_reply_address")
        if self.bot_rejection_status not in (400, 403):
            raise ValueError("bot_rejection_status must be 400 or 403")
        if self.name_min_length > self.name_max_length:
            raise ValueError("name_min_length must not exceed name_max_length")
        return self

    def required_fields_for(self, category: Optional[str]) -> Tuple[str, ...]:
        """Fields made mandatory by the selected category, if recognized."""
        if not isinstance(category, str):
            return ()
        rule = self.category_rules.get(category)
        return rule.required_fields if rule else ()


# Environment variables that override values from the policy file
ENV_OVERRIDES = {
    "EMAIL_TO": ("recipient", str),
    "CONTACT_ACCESS_KEY": ("access_key", str),
    "RATE_LIMIT_MAX": ("max_requests", int),
    "RATE_LIMIT_WINDOW_SECONDS": ("window_seconds", int),
}


def load_policy(path: Optional[str] = None) -> Policy:
    """
    Build the active policy from an optional file plus environment overrides.

    Args:
        path: YAML or JSON policy file. Defaults to ``CONTACT_POLICY_FILE``,
            then to a ``contact_policy`` file under config/ or the working
            directory.

    Returns:
        Validated Policy

    Raises:
        PolicyConfigurationError: If the file or any override is invalid
    """
    path = path or get_secret("CONTACT_POLICY_FILE") or find_config_file("contact_policy")
    raw = {}

    if path:
        try:
            raw = load_config_with_secrets(path)
        except (OSError, ValueError) as e:
            raise PolicyConfigurationError(
                f"Could not load policy file: {e}",
                component="policy",
                context={"path": path},
            ) from e

    for env_name, (field_name, cast) in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value is None:
            continue
        try:
            raw[field_name] = cast(value)
        except ValueError as e:
            raise PolicyConfigurationError(
                f"{env_name} must be a valid {cast.__name__}",
                component="policy",
            ) from e
        logger.info(f"Policy override {env_name}={describe_setting(env_name, value)}")

    try:
        return Policy(**raw)
    except ValidationError as e:
        raise PolicyConfigurationError(
            f"Invalid policy: {e.error_count()} error(s)",
            component="policy",
            context={"errors": [err["msg"] for err in e.errors()]},
        ) from e
