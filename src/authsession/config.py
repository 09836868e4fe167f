"""Session configuration via pydantic-settings."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings


class SessionSettings(BaseSettings):
    api_base_url: str = "http://localhost:3000/api"
    request_timeout_seconds: float = 30.0

    # Proactive renewal fires this long before the access token expires.
    renewal_buffer_seconds: float = 60.0
    # Used when a credential response omits expires_in.
    default_expires_in: int = 900

    login_path: str = "/auth/login"
    signup_path: str = "/auth/signup"
    refresh_path: str = "/auth/refresh"
    logout_path: str = "/auth/logout"

    token_dir: str = "~/.authsession"
    log_level: str = "INFO"

    model_config = {"env_prefix": "AUTHSESSION_", "env_file": ".env", "extra": "ignore"}

    @property
    def token_path(self) -> Path:
        return Path(self.token_dir).expanduser() / "session.json"


settings = SessionSettings()
