"""Redaction helpers so credentials never reach the logs."""

from __future__ import annotations

import re
from typing import Any

SENSITIVE_KEYS = (
    "password",
    "token",
    "secret",
    "key",
    "authorization",
    "cookie",
    "session",
    "credential",
    "jwt",
    "bearer",
)

REDACTED = "[REDACTED]"

_JWT_PATTERN = re.compile(r"eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+")


def mask_token(token: str | None, visible: int = 4) -> str:
    """Render a token as a short fingerprint, e.g. ``abcd...wxyz``."""
    if not token:
        return "<none>"
    if len(token) <= visible * 2:
        return "*" * len(token)
    return f"{token[:visible]}...{token[-visible:]}"


def mask_secrets(value: Any, sensitive_keys: tuple[str, ...] = SENSITIVE_KEYS) -> Any:
    """Recursively redact sensitive keys in mappings and JWTs in strings."""
    if value is None:
        return None

    if isinstance(value, str):
        return _JWT_PATTERN.sub("[JWT_TOKEN]", value)

    if isinstance(value, (list, tuple)):
        return [mask_secrets(item, sensitive_keys) for item in value]

    if isinstance(value, dict):
        masked: dict[str, Any] = {}
        for key, item in value.items():
            lowered = str(key).lower()
            if any(s in lowered for s in sensitive_keys):
                masked[key] = REDACTED
            else:
                masked[key] = mask_secrets(item, sensitive_keys)
        return masked

    return value
