"""authsession - keeps an httpx client continuously authenticated.

Usage:
    from authsession import ApiClient, FileTokenStore, SessionEvent

    async with ApiClient(store=FileTokenStore("~/.authsession/session.json")) as client:
        client.subscribe(lambda event: print(event))
        await client.login("user@example.com", "secret")
        data = await client.get("/auth/profile")
"""

from .api import ApiClient
from .config import SessionSettings, settings
from .errors import (
    ApiError,
    AuthenticationFailure,
    AuthSessionError,
    RenewalRejected,
    RenewalUnavailable,
    SessionExpired,
)
from .session import (
    ProactiveScheduler,
    RequestPipeline,
    SessionCoordinator,
    SessionEvent,
    SessionState,
    SingleFlightRenewer,
)
from .tokens import CredentialClient, CredentialPair, FileTokenStore, MemoryTokenStore, SessionRecord, TokenStore

__all__ = [
    "ApiClient",
    "ApiError",
    "AuthenticationFailure",
    "AuthSessionError",
    "CredentialClient",
    "CredentialPair",
    "FileTokenStore",
    "MemoryTokenStore",
    "ProactiveScheduler",
    "RenewalRejected",
    "RenewalUnavailable",
    "RequestPipeline",
    "SessionCoordinator",
    "SessionEvent",
    "SessionRecord",
    "SessionSettings",
    "SessionState",
    "SingleFlightRenewer",
    "TokenStore",
    "settings",
]
