"""Redaction of sensitive values before they reach a log trail."""

from __future__ import annotations

import json
import re
from typing import Any, Iterable, Optional, Set

REDACTED = "[REDACTED]"

DEFAULT_SENSITIVE_KEYS = [
    "password",
    "passwd",
    "secret",
    "apiKey",
    "api_key",
    "apikey",
    "token",
    "accessToken",
    "access_token",
    "refreshToken",
    "refresh_token",
    "privateKey",
    "private_key",
    "secretKey",
    "secret_key",
    "credential",
    "credentials",
    "auth",
    "authorization",
    "cookie",
    "session",
    "ssn",
    "creditCard",
    "credit_card",
    "cardNumber",
    "card_number",
    "cvv",
]

SECRET_VALUE_PATTERNS = [
    re.compile(r"^sk[-_][A-Za-z0-9_-]{16,}$"),
    re.compile(r"^bearer\s+[A-Za-z0-9._~+/-]{16,}=*$", re.IGNORECASE),
    re.compile(r"^basic\s+[A-Za-z0-9+/]{8,}={0,2}$", re.IGNORECASE),
    re.compile(r"^gh[pousr]_[A-Za-z0-9]{20,}$"),
    re.compile(r"^xox[baprs]-[A-Za-z0-9-]{10,}$"),
    re.compile(r"^eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*$"),
]


def looks_like_secret(value: str) -> bool:
    return any(pattern.search(value) for pattern in SECRET_VALUE_PATTERNS)


def redact_sensitive_fields(value: Any, sensitive_keys: Optional[Iterable[str]] = None) -> Any:
    """Return a redacted deep copy of ``value``.

    Keys matching ``sensitive_keys`` (case-insensitive) have their values
    replaced with ``[REDACTED]``, as do string values that look like bearer
    tokens or provider API keys. Values that are not JSON serializable are
    stringified so the result can always be rendered.
    """
    keys = sensitive_keys if sensitive_keys is not None else DEFAULT_SENSITIVE_KEYS
    sensitive: Set[str] = {k.lower() for k in keys}
    return _redact(value, sensitive)


def _redact(value: Any, sensitive: Set[str]) -> Any:
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return REDACTED if looks_like_secret(value) else value
    if isinstance(value, dict):
        sanitized = {}
        for key, item in value.items():
            if str(key).lower() in sensitive:
                sanitized[key] = REDACTED
            else:
                sanitized[key] = _redact(item, sensitive)
        return sanitized
    if isinstance(value, (list, tuple, set)):
        return [_redact(item, sensitive) for item in value]
    if hasattr(value, "model_dump"):
        return _redact(value.model_dump(mode="json"), sensitive)
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return str(value)


__all__ = [
    "REDACTED",
    "DEFAULT_SENSITIVE_KEYS",
    "looks_like_secret",
    "redact_sensitive_fields",
]
