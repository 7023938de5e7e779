"""Tests for the key:value structured field sub-format."""

import pytest

from core.error_handling import StructuredFieldError
from core.structured_fields import parse_key_value_block


def test_parses_pairs_and_trims_whitespace():
    block = " Agency : County Sheriff ; Badge:1234;Phone: 555-0100 ;"

    assert parse_key_value_block(block) == {
        "Agency": "County Sheriff",
        "Badge": "1234",
        "Phone": "555-0100",
    }


def test_value_may_contain_colons():
    assert parse_key_value_block("Website: https://example.org") == {
        "Website": "https://example.org"
    }


def test_empty_block_parses_to_empty_mapping():
    assert parse_key_value_block("") == {}
    assert parse_key_value_block(" ; ;") == {}


def test_empty_value_is_allowed():
    assert parse_key_value_block("Notes:") == {"Notes": ""}


def test_segment_without_colon_is_malformed():
    with pytest.raises(StructuredFieldError) as exc_info:
        parse_key_value_block("Agency: Sheriff; just some text", field_name="details")

    assert exc_info.value.message == "details entry 2 must be written as key:value."
    assert exc_info.value.context == {"field": "details", "position": 2}


def test_empty_key_is_malformed():
    with pytest.raises(StructuredFieldError, match="missing a key"):
        parse_key_value_block(": value")


def test_repeated_key_is_malformed():
    with pytest.raises(StructuredFieldError, match="repeats the key 'Badge'"):
        parse_key_value_block("Badge: 1; Badge: 2")
