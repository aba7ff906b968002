"""
Tests for email/phone normalization
"""

import pytest

from services.errors import ErrorKind, ValidationError
from services.normalizer import NormalizedIdentity, normalize_email, normalize_identity, normalize_phone


@pytest.mark.parametrize("raw,expected", [
    ("lorraine@hillvalley.edu", "lorraine@hillvalley.edu"),
    ("  Lorraine@HillValley.EDU\t", "lorraine@hillvalley.edu"),
    ("", None),
    ("   ", None),
    (None, None),
    (123, None),
    (4.5, None),
])
def test_normalize_email(raw, expected):
    assert normalize_email(raw) == expected


@pytest.mark.parametrize("raw,expected", [
    ("123456", "123456"),
    (" +1 (555) 010-9999 ", "+1 (555) 010-9999"),
    (123456, "123456"),
    (123456.0, "123456"),
    (12.5, "12.5"),
    ("", None),
    ("  ", None),
    (None, None),
])
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_normalize_identity_keeps_single_field():
    assert normalize_identity(None, "123456") == NormalizedIdentity(None, "123456")
    assert normalize_identity("A@B.C", None) == NormalizedIdentity("a@b.c", None)


@pytest.mark.parametrize("email,phone", [
    (None, None),
    ("", ""),
    ("  ", None),
    (None, " "),
    (123, None),
])
def test_normalize_identity_requires_one_field(email, phone):
    with pytest.raises(ValidationError) as exc_info:
        normalize_identity(email, phone)

    assert exc_info.value.kind is ErrorKind.VALIDATION
    assert "email or phoneNumber" in exc_info.value.message


def test_lock_keys_are_sorted_and_skip_absent_fields():
    assert NormalizedIdentity("a@b.c", "42").lock_keys() == ["email:a@b.c", "phone:42"]
    assert NormalizedIdentity(None, "42").lock_keys() == ["phone:42"]
