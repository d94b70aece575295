"""
Errors raised by the Spotify integration.
"""

from typing import Optional


class SpotifyError(Exception):
    """Base class for Spotify integration failures."""


class SpotifyConfigError(SpotifyError):
    """Client id, secret or redirect URI is not configured."""


class SpotifyApiError(SpotifyError):
    """Spotify rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SpotifyAuthRequiredError(SpotifyError):
    """The user has to (re)connect their Spotify account."""
