"""
Field Sanitizer

Escaping and shape checks for individual untrusted string fields before they
are embedded in the generated email body.
"""

import re
from html.entities import html5
from typing import Any, Optional

from email_validator import EmailNotValidError, validate_email

# Characters that are significant inside an HTML document
_ESCAPES = {
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "/": "&#x2F;",
    "`": "&#96;",
}

# An ampersand plus whatever would follow it in a character reference
_AMPERSAND = re.compile(r"&(#[0-9]+;|#[xX][0-9a-fA-F]+;|[A-Za-z][A-Za-z0-9]*;)?")
_SPECIALS = re.compile("[" + re.escape("".join(_ESCAPES)) + "]")


def _escape_ampersand(match: "re.Match") -> str:
    reference = match.group(1)
    if reference and (reference.startswith("#") or reference in html5):
        return match.group(0)
    return "&amp;" + (reference or "")


def escape(value: str) -> str:
    """
    Neutralize HTML-significant characters in a string.

    Existing character references are not encoded again, so escaping an
    already escaped value returns it unchanged.

    Args:
        value: Untrusted text

    Returns:
        Text safe to embed in an HTML body
    """
    value = _AMPERSAND.sub(_escape_ampersand, value)
    return _SPECIALS.sub(lambda match: _ESCAPES[match.group(0)], value)


def escape_value(value: Any) -> Any:
    """Escape strings nested anywhere inside a request value."""
    if isinstance(value, str):
        return escape(value)
    if isinstance(value, dict):
        return {escape(str(k)): escape_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [escape_value(item) for item in value]
    return value


def is_empty(value: Optional[str], ignore_whitespace: bool = True) -> bool:
    """Check if a string carries no content."""
    if value is None:
        return True
    if ignore_whitespace:
        return value.strip() == ""
    return value == ""


def is_email(value: Any) -> bool:
    """Check if a value is a syntactically valid email address."""
    if not isinstance(value, str) or not value:
        return False
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def is_length_in_range(value: Any, min_length: int, max_length: int) -> bool:
    """Check if a string's length lies in [min_length, max_length]."""
    if not isinstance(value, str):
        return False
    return min_length <= len(value) <= max_length
