"""Client library: HTTP client, persisted session and the refresh broker."""

from .api import CRMClient, CRMClientError
from .context import AppContext
from .refresh import RefreshBroker
from .session import FileSessionStore, MemorySessionStore, SessionState, SessionStore

__all__ = [
    "AppContext",
    "CRMClient",
    "CRMClientError",
    "FileSessionStore",
    "MemorySessionStore",
    "RefreshBroker",
    "SessionState",
    "SessionStore",
]
