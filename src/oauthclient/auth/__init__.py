"""Authentication layer — session refresh, expiry signal and cookie storage."""

from oauthclient.auth.announcer import SESSION_EXPIRED_EVENT, SessionAnnouncer
from oauthclient.auth.refresh import RefreshCoordinator, RefreshState

__all__ = [
    "SESSION_EXPIRED_EVENT",
    "RefreshCoordinator",
    "RefreshState",
    "SessionAnnouncer",
]
