"""Token storage for the persisted session record.

The session record is persisted as three entries (``access_token``,
``refresh_token``, ``token_expiry``) that are always written and removed
together. Stores expose whole-record get/set/clear only, so a reader sees
either the previous complete record or the new one.
"""

from __future__ import annotations

import json
import logging
import math
import os
import tempfile
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
TOKEN_EXPIRY_KEY = "token_expiry"


@dataclass(frozen=True)
class SessionRecord:
    """What the store persists for an authenticated session."""

    access_token: str
    refresh_token: str
    expires_at: float  # Unix timestamp

    def __post_init__(self) -> None:
        if not self.access_token or not self.refresh_token:
            raise ValueError("Session record requires non-empty access and refresh tokens")
        if not isinstance(self.expires_at, (int, float)) or not math.isfinite(self.expires_at):
            raise ValueError(f"Invalid expiry instant: {self.expires_at!r}")

    def seconds_remaining(self, now: float | None = None) -> float:
        """Seconds until the access token expires (never negative)."""
        now = time.time() if now is None else now
        return max(0.0, self.expires_at - now)

    def is_expired(self, buffer_seconds: float = 0.0, now: float | None = None) -> bool:
        """Check if the access token is expired, optionally with a buffer."""
        now = time.time() if now is None else now
        return now >= self.expires_at - buffer_seconds

    def to_dict(self) -> dict[str, Any]:
        """Convert to the three persisted entries."""
        return {
            ACCESS_TOKEN_KEY: self.access_token,
            REFRESH_TOKEN_KEY: self.refresh_token,
            TOKEN_EXPIRY_KEY: self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionRecord":
        """Create from the persisted entries.

        Raises:
            KeyError: If an entry is missing
            ValueError: If an entry is empty or malformed
        """
        return cls(
            access_token=data[ACCESS_TOKEN_KEY],
            refresh_token=data[REFRESH_TOKEN_KEY],
            expires_at=float(data[TOKEN_EXPIRY_KEY]),
        )


class TokenStore(ABC):
    """Synchronous, idempotent store for a single session record.

    Absence is represented by ``None``; no operation raises for "not found".
    """

    @abstractmethod
    def get(self) -> SessionRecord | None:
        """Return the stored record, or None."""

    @abstractmethod
    def set(self, record: SessionRecord) -> None:
        """Replace the stored record as a unit."""

    @abstractmethod
    def clear(self) -> None:
        """Remove the stored record (no-op when empty)."""


class MemoryTokenStore(TokenStore):
    """In-process store. Tokens are lost when the process exits."""

    def __init__(self, record: SessionRecord | None = None):
        self._entries: dict[str, Any] | None = record.to_dict() if record else None

    def get(self) -> SessionRecord | None:
        entries = self._entries
        if entries is None:
            return None
        return SessionRecord.from_dict(entries)

    def set(self, record: SessionRecord) -> None:
        # Swap the whole mapping; never mutate entries in place.
        self._entries = record.to_dict()

    def clear(self) -> None:
        self._entries = None


class FileTokenStore(TokenStore):
    """Durable store backed by a JSON file with restrictive permissions.

    Writes go to a temporary file in the same directory and are moved into
    place with ``os.replace``, which is atomic on POSIX and Windows.

    Usage:
        store = FileTokenStore(Path.home() / ".authsession" / "session.json")
        store.set(record)
        record = store.get()
    """

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()

    def get(self) -> SessionRecord | None:
        if not self.path.exists():
            return None

        try:
            with open(self.path) as f:
                data = json.load(f)
            return SessionRecord.from_dict(data)
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Discarding unreadable session record at %s: %s", self.path, e)
            return None

    def set(self, record: SessionRecord) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(record.to_dict(), indent=2)

        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".session-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(content)
            # Set restrictive permissions before the record becomes visible
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
