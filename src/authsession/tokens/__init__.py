"""Credential exchange and session record storage.

Usage:
    from authsession.tokens import CredentialClient, FileTokenStore

    store = FileTokenStore("~/.authsession/session.json")
    pair = await CredentialClient(http).login(email, password)
    store.set(pair.to_record())
"""

from .client import NO_AUTH, CredentialClient, CredentialPair
from .storage import FileTokenStore, MemoryTokenStore, SessionRecord, TokenStore

__all__ = [
    "NO_AUTH",
    "CredentialClient",
    "CredentialPair",
    "FileTokenStore",
    "MemoryTokenStore",
    "SessionRecord",
    "TokenStore",
]
