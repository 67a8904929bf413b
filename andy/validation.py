"""
Inbound message validation.

Rejects empty or oversized messages, anything that looks like it carries
sensitive identifiers (card numbers, SSNs, account numbers, passwords,
e-mail addresses), script-injection payloads, obvious spam, and control
characters. Every rejection is a ValidationFailed with a specific code.
"""

from __future__ import annotations

import logging
import re
import unicodedata

from andy.errors import ValidationFailed

logger = logging.getLogger(__name__)

SPAM_PATTERNS = [
    re.compile(r"\b(viagra|casino|lottery|prize)\b", re.IGNORECASE),
    re.compile(r"\b(win|winner|won)\s+\$\d+", re.IGNORECASE),
]

SENSITIVE_PATTERNS = {
    "credit_card": re.compile(r"\b\d{16}\b"),
    "ssn": re.compile(r"\b\d{9}\b"),
    "ssn_formatted": re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),
    "bank_account": re.compile(r"\b\d{10,12}\b"),
    "password": re.compile(r"\b(password|contraseña)\s*[:=]\s*\S+", re.IGNORECASE),
    "email": re.compile(r"\b[\w.%+-]+@[\w.-]+\.[a-zA-Z]{2,}\b"),
}

CODE_PATTERNS = [
    re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"\bon\w+\s*=\s*[\"']?[^\"']*[\"']?", re.IGNORECASE),
    re.compile(r"data:\s*text/html", re.IGNORECASE),
    re.compile(r"base64", re.IGNORECASE),
    re.compile(r"eval\s*\(", re.IGNORECASE),
    re.compile(r"exec\s*\(", re.IGNORECASE),
]

# Letters, marks, numbers, punctuation, symbols, separators. Whitespace
# controls (\n, \t) are allowed separately.
_ALLOWED_CATEGORIES = ("L", "M", "N", "P", "S", "Z")
_ALLOWED_CONTROLS = {"\n", "\r", "\t"}


class MessageValidator:

    def __init__(self, max_length: int = 4000, min_length: int = 1):
        self.max_length = max_length
        self.min_length = min_length

    @classmethod
    def from_config(cls, cfg: dict) -> "MessageValidator":
        v_cfg = cfg.get("validation", {})
        return cls(max_length=int(v_cfg.get("max_length", 4000)))

    def validate(self, message: str) -> None:
        """Raise ValidationFailed if the message must not be processed."""
        try:
            self._check_length(message)
            self._check_security(message)
            self._check_content(message)
        except ValidationFailed as e:
            logger.warning("Message validation failed: %s (length=%d)", e.code, len(message or ""))
            raise

    def detect_sensitive(self, message: str) -> list[str]:
        return [name for name, pattern in SENSITIVE_PATTERNS.items() if pattern.search(message)]

    def _check_length(self, message: str) -> None:
        trimmed = (message or "").strip()
        if len(trimmed) < self.min_length:
            raise ValidationFailed("Message cannot be empty", code="EMPTY_MESSAGE")
        if len(trimmed) > self.max_length:
            raise ValidationFailed(
                f"Message exceeds maximum length of {self.max_length} characters",
                code="MESSAGE_TOO_LONG",
            )

    def _check_security(self, message: str) -> None:
        found = self.detect_sensitive(message)
        if found:
            # Don't echo which identifier was found back to the client
            logger.info("Sensitive data detected: %s", ", ".join(found))
            raise ValidationFailed(
                "Message appears to contain sensitive personal data. Please remove it and try again.",
                code="SENSITIVE_DATA",
            )
        if any(p.search(message) for p in CODE_PATTERNS):
            raise ValidationFailed("Message contains potential code injection", code="CODE_INJECTION")

    def _check_content(self, message: str) -> None:
        if any(p.search(message) for p in SPAM_PATTERNS):
            raise ValidationFailed("Message contains spam content", code="SPAM_DETECTED")
        for ch in message:
            if ch in _ALLOWED_CONTROLS:
                continue
            if not unicodedata.category(ch).startswith(_ALLOWED_CATEGORIES):
                raise ValidationFailed("Message contains invalid characters", code="INVALID_CHARACTERS")
