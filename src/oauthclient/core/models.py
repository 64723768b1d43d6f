"""Data model dataclasses for backend payloads."""

from dataclasses import dataclass, field


# ----------------------
# User / session status
# ----------------------


@dataclass
class User:
    """Represents an authenticated user (OAuth or local account)."""

    id: str
    login: str
    name: str
    email: str | None = None
    avatar_url: str | None = None
    """URL of the user's avatar, as reported by the OAuth provider."""

    @classmethod
    def from_dict(cls, raw: dict) -> "User":
        return cls(
            id=str(raw.get("id", "")),
            login=raw.get("login", ""),
            name=raw.get("name", ""),
            email=raw.get("email"),
            avatar_url=raw.get("avatarUrl"),
        )


@dataclass
class AuthStatus:
    """Session state as reported by ``/api/auth/status``."""

    authenticated: bool
    user: User | None = None

    @classmethod
    def from_dict(cls, raw: dict) -> "AuthStatus":
        user = raw.get("user")
        return cls(
            authenticated=bool(raw.get("authenticated", False)),
            user=User.from_dict(user) if user else None,
        )


# ----------------------
# Protected / public data
# ----------------------


@dataclass
class ProtectedData:
    """Payload of ``/api/protected/data``, only served to a valid session."""

    message: str
    user: str
    items: list[str] = field(default_factory=list)
    count: int | None = None
    last_updated: int | None = None
    """Epoch milliseconds of the last data update, or ``None``."""

    @classmethod
    def from_dict(cls, raw: dict) -> "ProtectedData":
        data = raw.get("data") or {}
        return cls(
            message=raw.get("message", ""),
            user=raw.get("user", ""),
            items=list(data.get("items") or []),
            count=data.get("count"),
            last_updated=data.get("lastUpdated"),
        )


@dataclass
class ActionResult:
    """Outcome of ``POST /api/protected/action``."""

    message: str
    user: str | None
    action: str | None
    result: str | None
    timestamp: int | None

    @classmethod
    def from_dict(cls, raw: dict) -> "ActionResult":
        return cls(
            message=raw.get("message", ""),
            user=raw.get("user"),
            action=raw.get("action"),
            result=raw.get("result"),
            timestamp=raw.get("timestamp"),
        )


@dataclass
class PublicData:
    """Payload of the public health endpoint."""

    status: str
    message: str
    timestamp: int | None

    @classmethod
    def from_dict(cls, raw: dict) -> "PublicData":
        return cls(
            status=raw.get("status", ""),
            message=raw.get("message", ""),
            timestamp=raw.get("timestamp"),
        )


@dataclass
class OAuthProvider:
    """An OAuth provider enabled on the backend (e.g. ``github``)."""

    key: str
    name: str

    @classmethod
    def from_dict(cls, raw: dict) -> "OAuthProvider":
        return cls(key=raw.get("key", ""), name=raw.get("name", ""))
