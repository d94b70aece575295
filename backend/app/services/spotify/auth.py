import base64
import logging
import os
from typing import Dict, Optional
from urllib.parse import urlencode
import httpx
from app.schemas.spotify import SpotifyTokenSchema
from app.services.spotify.errors import SpotifyApiError, SpotifyConfigError

logger = logging.getLogger(__name__)

SPOTIFY_CLIENT_ID = os.getenv("SPOTIFY_CLIENT_ID")
SPOTIFY_CLIENT_SECRET = os.getenv("SPOTIFY_CLIENT_SECRET")
SPOTIFY_REDIRECT_URI = os.getenv(
    "SPOTIFY_REDIRECT_URI", "http://localhost:3000/spotify/callback"
)

AUTH_URL = "https://accounts.spotify.com/authorize"
TOKEN_URL = "https://accounts.spotify.com/api/token"

# Scopes needed to read the user's playlists and add approved songs to them
SPOTIFY_SCOPES = [
    "user-read-private",
    "user-read-email",
    "playlist-read-private",
    "playlist-modify-private",
    "playlist-modify-public",
]


class SpotifyAuthService:
    """Service for Spotify authentication flows."""

    @staticmethod
    def is_configured() -> bool:
        return bool(SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET)

    @staticmethod
    def get_auth_url(scopes: list[str], state: Optional[str] = None) -> str:
        """Generate the Spotify authorization URL."""
        if not SPOTIFY_CLIENT_ID or not SPOTIFY_REDIRECT_URI:
            raise SpotifyConfigError("Spotify configuration is missing.")

        params = {
            "client_id": SPOTIFY_CLIENT_ID,
            "response_type": "code",
            "redirect_uri": SPOTIFY_REDIRECT_URI,
            "scope": " ".join(scopes),
        }

        if state:
            params["state"] = state

        return f"{AUTH_URL}?{urlencode(params)}"

    @staticmethod
    async def get_tokens(code: str) -> SpotifyTokenSchema:
        """Exchange the authorization code for access and refresh tokens."""
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": SPOTIFY_REDIRECT_URI,
        }
        return await SpotifyAuthService._request_token(data)

    @staticmethod
    async def refresh_token(refresh_token: str) -> SpotifyTokenSchema:
        """Refresh an expired user access token."""
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }
        return await SpotifyAuthService._request_token(data)

    @staticmethod
    async def get_client_credentials_token() -> SpotifyTokenSchema:
        """Request an application token, not tied to any user."""
        return await SpotifyAuthService._request_token(
            {"grant_type": "client_credentials"}
        )

    @staticmethod
    async def _request_token(data: Dict[str, str]) -> SpotifyTokenSchema:
        if not SpotifyAuthService.is_configured():
            raise SpotifyConfigError("Spotify client ID or secret is not configured.")

        auth_header = base64.b64encode(
            f"{SPOTIFY_CLIENT_ID}:{SPOTIFY_CLIENT_SECRET}".encode()
        ).decode()

        headers = {
            "Authorization": f"Basic {auth_header}",
            "Content-Type": "application/x-www-form-urlencoded",
        }

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    TOKEN_URL, headers=headers, data=data, timeout=10.0
                )
            except httpx.RequestError as e:
                raise SpotifyApiError(f"Spotify token endpoint unreachable: {e}")

            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                logger.warning(
                    f"Spotify token request ({data['grant_type']}) failed with {status_code}"
                )
                raise SpotifyApiError(
                    f"Spotify token request failed with status {status_code}",
                    status_code=status_code,
                )

            return SpotifyTokenSchema(**response.json())
