"""
Structured Field Parsing

Some form fields carry a small text block of ``key:value`` pairs separated by
semicolons, for example::

    "Agency: County Sheriff; Badge: 1234; Phone: 555-0100;"

Whitespace around keys and values is trimmed and empty segments are ignored.
The first colon splits a pair, so values may themselves contain colons.
A segment without a colon, with an empty key, or repeating an earlier key
is malformed and raises ``StructuredFieldError``.
"""

from typing import Dict

from core.error_handling import StructuredFieldError

PAIR_SEPARATOR = ";"
KEY_VALUE_SEPARATOR = ":"


def parse_key_value_block(text: str, field_name: str = "field") -> Dict[str, str]:
    """
    Parse a ``key:value;key:value`` block into an ordered mapping.

    Args:
        text: Raw block text
        field_name: Name of the form field, used in error messages

    Returns:
        Mapping of trimmed keys to trimmed values

    Raises:
        StructuredFieldError: If any non-empty segment is malformed
    """
    parsed: Dict[str, str] = {}

    for position, segment in enumerate(text.split(PAIR_SEPARATOR), start=1):
        if not segment.strip():
            continue

        key, separator, value = segment.partition(KEY_VALUE_SEPARATOR)
        key = key.strip()

        if not separator:
            raise StructuredFieldError(
                f"{field_name} entry {position} must be written as key:value.",
                component="structured_fields",
                context={"field": field_name, "position": position},
            )
        if not key:
            raise StructuredFieldError(
                f"{field_name} entry {position} is missing a key.",
                component="structured_fields",
                context={"field": field_name, "position": position},
            )
        if key in parsed:
            raise StructuredFieldError(
                f"{field_name} repeats the key '{key}'.",
                component="structured_fields",
                context={"field": field_name, "position": position},
            )

        parsed[key] = value.strip()

    return parsed
