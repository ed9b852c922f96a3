"""Redaction of sensitive values before they reach execution logs."""

import re
from typing import Any

from core.logging import get_logger

logger = get_logger(__name__)

SENSITIVE_KEYS = frozenset(key.lower() for key in [
    # API keys
    "apiKey", "api_key", "apikey", "key",
    # Credentials
    "password", "passwd", "pwd", "secret", "token",
    "accessToken", "access_token", "refreshToken", "refresh_token",
    "privateKey", "private_key",
    # Database
    "databaseUrl", "database_url", "connectionString", "connection_string",
    # Email
    "fromEmail", "from_email",
    # Authentication
    "authorization", "auth", "bearer",
    # Payment
    "creditCard", "credit_card", "cardNumber", "card_number", "cvv", "ssn",
    # Personal info
    "phoneNumber", "phone_number", "socialSecurity", "social_security",
])

SENSITIVE_PATTERNS = [
    re.compile(r'api[_-]?key', re.IGNORECASE),
    re.compile(r'token', re.IGNORECASE),
    re.compile(r'secret', re.IGNORECASE),
    re.compile(r'password', re.IGNORECASE),
    re.compile(r'credential', re.IGNORECASE),
    re.compile(r'auth', re.IGNORECASE),
]

REDACTED = "[REDACTED]"
MAX_DEPTH = 10


def is_sensitive_key(key: str) -> bool:
    """Check if a key name indicates sensitive data."""
    if key.lower() in SENSITIVE_KEYS:
        return True
    return any(pattern.search(key) for pattern in SENSITIVE_PATTERNS)


def mask_value(value: str) -> str:
    """Mask a string, keeping only its last 4 characters."""
    if not value:
        return REDACTED
    if len(value) <= 4:
        return "****"
    return "*" * min(8, len(value) - 4) + value[-4:]


def _redact(value: Any, depth: int) -> Any:
    if depth > MAX_DEPTH:
        return value

    if isinstance(value, list):
        return [_redact(item, depth + 1) for item in value]

    if isinstance(value, dict):
        redacted = {}
        for key, item in value.items():
            if is_sensitive_key(str(key)):
                redacted[key] = mask_value(item) if isinstance(item, str) else REDACTED
            else:
                redacted[key] = _redact(item, depth + 1)
        return redacted

    return value


def redact_sensitive_data(data: Any) -> Any:
    """Return a copy of data with sensitive fields masked.

    Keys match either an exact name (apiKey, password, cvv...) or a pattern
    (token, secret, credential, auth...). String values keep their last four
    characters; anything else becomes "[REDACTED]".
    """
    if data is None:
        return data
    return _redact(data, 0)
