"""
Translation of Spotify integration errors into HTTP responses.
"""

import logging

from fastapi import HTTPException, status

from app.services.spotify.errors import (
    SpotifyApiError,
    SpotifyAuthRequiredError,
    SpotifyConfigError,
    SpotifyError,
)

logger = logging.getLogger(__name__)


def spotify_http_error(error: SpotifyError) -> HTTPException:
    """Map a Spotify error to the HTTPException a route should raise."""
    if isinstance(error, SpotifyAuthRequiredError):
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Spotify authorization required",
        )

    if isinstance(error, SpotifyConfigError):
        logger.error(f"Spotify integration is not configured: {error}")
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Spotify integration is not configured",
        )

    if isinstance(error, SpotifyApiError) and error.status_code == 429:
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Spotify rate limit reached, try again later",
        )

    logger.warning(f"Spotify request failed: {error}")
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail="Spotify request failed",
    )
