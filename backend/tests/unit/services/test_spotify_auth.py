"""Unit tests for SpotifyAuthService."""

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from urllib.parse import quote

from app.services.spotify.auth import SpotifyAuthService, AUTH_URL, TOKEN_URL
from app.services.spotify.errors import SpotifyApiError, SpotifyConfigError
from app.schemas.spotify import SpotifyTokenSchema


@pytest.fixture
def configured():
    """Patch in client credentials and a redirect URI."""
    with (
        patch("app.services.spotify.auth.SPOTIFY_CLIENT_ID", "test_client_id"),
        patch("app.services.spotify.auth.SPOTIFY_CLIENT_SECRET", "test_client_secret"),
        patch(
            "app.services.spotify.auth.SPOTIFY_REDIRECT_URI",
            "https://test.com/callback",
        ),
    ):
        yield


@pytest.fixture
def token_response():
    """Sample token response from Spotify."""
    return {
        "access_token": "new_access_token",
        "token_type": "Bearer",
        "expires_in": 3600,
        "refresh_token": "new_refresh_token",
        "scope": "user-read-private user-read-email",
    }


def mock_post_returning(mock_client, body):
    mock_response = MagicMock()
    mock_response.raise_for_status = MagicMock()
    mock_response.json.return_value = body
    mock_post = AsyncMock(return_value=mock_response)
    mock_client.return_value.post = mock_post
    return mock_post


class TestSpotifyAuthService:
    """Tests for the SpotifyAuthService class."""

    def test_get_auth_url(self, configured):
        """Authorize URL carries client id, redirect, scopes and state."""
        scopes = ["user-read-private", "playlist-modify-public"]
        auth_url = SpotifyAuthService.get_auth_url(scopes, state="test_state")

        assert auth_url.startswith(AUTH_URL)
        assert "client_id=test_client_id" in auth_url
        assert "response_type=code" in auth_url
        assert quote("https://test.com/callback", safe="") in auth_url
        assert "scope=user-read-private+playlist-modify-public" in auth_url
        assert "state=test_state" in auth_url

    def test_get_auth_url_not_configured(self):
        with patch("app.services.spotify.auth.SPOTIFY_CLIENT_ID", None):
            with pytest.raises(SpotifyConfigError):
                SpotifyAuthService.get_auth_url(["user-read-private"])

    @pytest.mark.asyncio
    async def test_get_tokens(self, configured, token_response):
        """Authorization code exchange posts the code with basic auth."""
        with patch("httpx.AsyncClient.__aenter__", new_callable=AsyncMock) as mock_client:
            mock_post = mock_post_returning(mock_client, token_response)

            result = await SpotifyAuthService.get_tokens("test_auth_code")

            mock_post.assert_called_once()
            args, kwargs = mock_post.call_args
            assert args[0] == TOKEN_URL
            assert "Basic " in kwargs["headers"]["Authorization"]
            assert kwargs["data"]["grant_type"] == "authorization_code"
            assert kwargs["data"]["code"] == "test_auth_code"
            assert kwargs["data"]["redirect_uri"] == "https://test.com/callback"

            assert isinstance(result, SpotifyTokenSchema)
            assert result.access_token == "new_access_token"
            assert result.refresh_token == "new_refresh_token"

    @pytest.mark.asyncio
    async def test_refresh_token(self, configured, token_response):
        """Spotify does not always rotate the refresh token."""
        token_response.pop("refresh_token")

        with patch("httpx.AsyncClient.__aenter__", new_callable=AsyncMock) as mock_client:
            mock_post = mock_post_returning(mock_client, token_response)

            result = await SpotifyAuthService.refresh_token("old_refresh_token")

            _, kwargs = mock_post.call_args
            assert kwargs["data"]["grant_type"] == "refresh_token"
            assert kwargs["data"]["refresh_token"] == "old_refresh_token"
            assert result.refresh_token is None

    @pytest.mark.asyncio
    async def test_client_credentials(self, configured, token_response):
        with patch("httpx.AsyncClient.__aenter__", new_callable=AsyncMock) as mock_client:
            mock_post = mock_post_returning(mock_client, token_response)

            result = await SpotifyAuthService.get_client_credentials_token()

            _, kwargs = mock_post.call_args
            assert kwargs["data"] == {"grant_type": "client_credentials"}
            assert result.expires_in == 3600

    @pytest.mark.asyncio
    async def test_http_error_becomes_api_error(self, configured):
        """A rejected exchange surfaces as SpotifyApiError with the status."""
        request = httpx.Request("POST", TOKEN_URL)
        error_response = httpx.Response(400, request=request)

        with patch("httpx.AsyncClient.__aenter__", new_callable=AsyncMock) as mock_client:
            mock_response = MagicMock()
            mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
                "Bad Request", request=request, response=error_response
            )
            mock_client.return_value.post = AsyncMock(return_value=mock_response)

            with pytest.raises(SpotifyApiError) as exc_info:
                await SpotifyAuthService.get_tokens("bad_code")

            assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_network_error_becomes_api_error(self, configured):
        with patch("httpx.AsyncClient.__aenter__", new_callable=AsyncMock) as mock_client:
            mock_client.return_value.post = AsyncMock(
                side_effect=httpx.ConnectError("connection refused")
            )

            with pytest.raises(SpotifyApiError) as exc_info:
                await SpotifyAuthService.refresh_token("refresh")

            assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_not_configured(self):
        with patch("app.services.spotify.auth.SPOTIFY_CLIENT_SECRET", None):
            with pytest.raises(SpotifyConfigError):
                await SpotifyAuthService.get_client_credentials_token()
