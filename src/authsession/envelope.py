"""Response envelope handling.

The backend wraps bodies as ``{"success": true, "data": ...}`` or
``{"success": false, "error": {"code", "message", "details"}}``.
"""

from __future__ import annotations

from typing import Any

import httpx

from .errors import ApiError
from .masking import mask_secrets


def is_envelope(payload: Any) -> bool:
    return isinstance(payload, dict) and "success" in payload


def unwrap_envelope(payload: Any, status_code: int | None = None) -> Any:
    """Return the envelope's data, or the payload unchanged if not enveloped.

    Raises:
        ApiError: If the envelope reports failure
    """
    if not is_envelope(payload):
        return payload

    if payload["success"]:
        return payload.get("data")

    error = payload.get("error") or {}
    raise ApiError(
        error.get("message") or "API request failed",
        error_code=error.get("code"),
        status_code=status_code,
        details=mask_secrets(error.get("details") or {}),
    )


def error_payload(response: httpx.Response) -> dict[str, Any]:
    """Best-effort decode of an error body for diagnostics."""
    try:
        data = response.json() if response.content else {}
    except ValueError:
        return {"raw_response": response.text[:500]}
    if not isinstance(data, dict):
        return {"raw_response": data}
    return mask_secrets(data)


def error_code_of(data: dict[str, Any], default: str) -> str:
    """Pull an error code out of a decoded error body."""
    error = data.get("error")
    if isinstance(error, dict):
        return error.get("code") or default
    if isinstance(error, str):
        return error
    return default
