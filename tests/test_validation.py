"""
Tests for inbound message validation.
"""

import pytest

from andy.errors import ValidationFailed
from andy.validation import MessageValidator


@pytest.fixture
def validator():
    return MessageValidator(max_length=100)


@pytest.mark.parametrize("message", [
    "hello",
    "Calculate my tax deductions for my W2 form",
    "I earned $52,000 last year — what's my bracket?",
    "¿Cuánto debo de impuestos?",
    "line one\nline two",
])
def test_valid_messages(validator, message):
    validator.validate(message)


@pytest.mark.parametrize("message,code", [
    ("", "EMPTY_MESSAGE"),
    ("   ", "EMPTY_MESSAGE"),
    ("x" * 101, "MESSAGE_TOO_LONG"),
    ("my card is 4111111111111111", "SENSITIVE_DATA"),
    ("ssn 123-45-6789", "SENSITIVE_DATA"),
    ("ssn 123456789", "SENSITIVE_DATA"),
    ("account 12345678901", "SENSITIVE_DATA"),
    ("password: hunter2", "SENSITIVE_DATA"),
    ("mail me at jo@example.com", "SENSITIVE_DATA"),
    ("<script>alert(1)</script>", "CODE_INJECTION"),
    ("click javascript:void(0)", "CODE_INJECTION"),
    ("run eval(payload)", "CODE_INJECTION"),
    ("free casino chips", "SPAM_DETECTED"),
    ("you won $500 today", "SPAM_DETECTED"),
    ("bad\x00byte", "INVALID_CHARACTERS"),
])
def test_rejected_messages(validator, message, code):
    with pytest.raises(ValidationFailed) as exc:
        validator.validate(message)
    assert exc.value.code == code
    assert exc.value.status == 400


def test_sensitive_message_does_not_echo_data(validator):
    with pytest.raises(ValidationFailed) as exc:
        validator.validate("ssn 123-45-6789")
    assert "123-45-6789" not in exc.value.message


def test_detect_sensitive_lists_kinds(validator):
    assert validator.detect_sensitive("jo@example.com 123-45-6789") == ["ssn_formatted", "email"]

