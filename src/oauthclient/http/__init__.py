"""HTTP layer — transport configuration.

The authenticated client lives in :mod:`oauthclient.http.client`.
"""

from oauthclient.http.transport import OutgoingRequest, Transport, api_base_url

__all__ = ["OutgoingRequest", "Transport", "api_base_url"]
