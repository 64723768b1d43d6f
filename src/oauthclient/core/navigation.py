"""In-process stand-in for the browser location.

The client library has no page to redirect, so "where the user currently
is" is modelled by a :class:`Navigator` that callers inject.  The refresh
coordinator only reads :attr:`Navigator.pathname`; services and session
listeners call :meth:`Navigator.go`.
"""

from collections.abc import Callable

PUBLIC_ROOT = "/"

# Routes that stay accessible without a session.
PUBLIC_ROUTES = ("/", "/error")

# Routes that require a session cookie.
PROTECTED_ROUTES = ("/dashboard",)

DEFAULT_LOGIN_REDIRECT = "/dashboard"


class Navigator:
    """Tracks the current location and records every navigation.

    Args:
        pathname: Initial location.  Defaults to the public root.
        on_navigate: Optional callback invoked with the new path after
            every :meth:`go`.
    """

    def __init__(
        self,
        pathname: str = PUBLIC_ROOT,
        on_navigate: Callable[[str], None] | None = None,
    ):
        self.pathname = pathname
        self.history: list[str] = [pathname]
        self._on_navigate = on_navigate

    def go(self, path: str) -> None:
        """Navigate to *path*."""
        self.pathname = path
        self.history.append(path)
        if self._on_navigate is not None:
            self._on_navigate(path)

    def is_public(self) -> bool:
        """Return ``True`` when the current location needs no session."""
        return self.pathname in PUBLIC_ROUTES

    def is_protected(self) -> bool:
        """Return ``True`` when the current location needs a session."""
        return any(self.pathname.startswith(r) for r in PROTECTED_ROUTES)
