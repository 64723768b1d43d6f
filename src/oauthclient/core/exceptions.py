"""Domain exceptions for the oauthclient library."""


class OAuthClientError(Exception):
    """Base class for all oauthclient library exceptions."""


class RefreshFailedError(OAuthClientError):
    """Raised to requests that were waiting on a session refresh that failed.

    Only requests queued behind the in-flight refresh receive this error.
    The request that triggered the refresh is rejected with its own
    original HTTP 401 instead, so callers can tell the two causes apart.
    """

    def __init__(self, message: str = "Token refresh failed"):
        super().__init__(message)
