import asyncio
import logging
import re
import httpx
from typing import Dict, Any, Optional
from urllib.parse import parse_qs, urlparse

from sqlalchemy.orm import Session
from app.db.models import User
from app.schemas.spotify import (
    PlaylistPage,
    PlaylistSummary,
    SpotifyUserProfile,
    TrackPage,
    TrackResponse,
)
from app.services.spotify.errors import SpotifyApiError
from app.services.spotify.tokens import get_app_token, get_user_token

logger = logging.getLogger(__name__)

BASE_URL = "https://api.spotify.com/v1"

# Longest Retry-After we are willing to wait for inside a request
MAX_RETRY_AFTER_SECONDS = 10

TRACK_URL_PATTERN = re.compile(
    r"open\.spotify\.com/(?:intl-[a-z]{2}(?:-[a-z]{2})?/)?track/([A-Za-z0-9]+)"
)
TRACK_URI_PATTERN = re.compile(r"^spotify:track:([A-Za-z0-9]+)$")
PLAYLIST_URL_PATTERN = re.compile(
    r"open\.spotify\.com/(?:intl-[a-z]{2}(?:-[a-z]{2})?/)?playlist/([A-Za-z0-9]+)"
)
PLAYLIST_URI_PATTERN = re.compile(r"^spotify:playlist:([A-Za-z0-9]+)$")
PLAIN_ID_PATTERN = re.compile(r"^[A-Za-z0-9]+$")


def get_track_id(value: str) -> Optional[str]:
    """Extract a track id from an open.spotify.com link, a spotify:track URI or a bare id."""
    if not value or not value.strip():
        return None
    value = value.strip()

    match = TRACK_URL_PATTERN.search(value) or TRACK_URI_PATTERN.match(value)
    if match:
        return match.group(1)

    return value if PLAIN_ID_PATTERN.match(value) else None


def get_playlist_id(value: str) -> Optional[str]:
    """Extract a playlist id from a link, a spotify:playlist URI or a bare id."""
    if not value or not value.strip():
        return None
    value = value.strip()

    match = PLAYLIST_URL_PATTERN.search(value) or PLAYLIST_URI_PATTERN.match(value)
    if match:
        return match.group(1)

    return value if PLAIN_ID_PATTERN.match(value) else None


def _next_offset(next_url: Optional[str]) -> Optional[int]:
    if not next_url:
        return None
    values = parse_qs(urlparse(next_url).query).get("offset")
    if values and values[0].isdigit():
        return int(values[0])
    return None


def map_track(item: Dict[str, Any]) -> TrackResponse:
    """Flatten a Spotify track object."""
    album = item.get("album") or {}
    images = sorted(
        album.get("images") or [], key=lambda i: i.get("height") or 0, reverse=True
    )
    return TrackResponse(
        id=item["id"],
        name=item.get("name") or "",
        artist=", ".join(a.get("name", "") for a in item.get("artists") or []),
        album=album.get("name") or "",
        album_image_url=images[0]["url"] if images else "",
        duration_ms=item.get("duration_ms") or 0,
        uri=item.get("uri") or "",
        explicit=bool(item.get("explicit")),
        external_url=(item.get("external_urls") or {}).get("spotify", ""),
    )


class SpotifyClient:
    """Client for interacting with Spotify Web API."""

    def __init__(self, access_token: str):
        self.access_token = access_token

    @classmethod
    async def for_app(cls, db: Session) -> "SpotifyClient":
        """Create a client authenticated with the application token."""
        return cls(access_token=await get_app_token(db))

    @classmethod
    async def for_user(cls, db: Session, user: User) -> "SpotifyClient":
        """Create a client for a specific user, refreshing their token if needed."""
        return cls(access_token=await get_user_token(db, user))

    async def _send(
        self,
        method: str,
        endpoint: str,
        params: Dict[str, Any] = None,
        data: Dict[str, Any] = None,
    ) -> httpx.Response:
        url = f"{BASE_URL}{endpoint}"

        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

        async with httpx.AsyncClient() as client:
            try:
                return await client.request(
                    method=method,
                    url=url,
                    params=params,
                    json=data,
                    headers=headers,
                    timeout=10.0,
                )
            except httpx.RequestError as e:
                raise SpotifyApiError(f"Spotify API unreachable: {e}")

    @staticmethod
    def _parse(response: httpx.Response, endpoint: str) -> Dict[str, Any]:
        if response.status_code >= 400:
            logger.warning(
                f"Spotify API {endpoint} failed with status {response.status_code}"
            )
            raise SpotifyApiError(
                f"Spotify API request failed with status {response.status_code}",
                status_code=response.status_code,
            )
        return response.json() if response.text else {}

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Dict[str, Any] = None,
        data: Dict[str, Any] = None,
    ) -> Dict[str, Any]:
        """Send a request to the Spotify API and return the decoded body."""
        response = await self._send(method, endpoint, params=params, data=data)
        return self._parse(response, endpoint)

    async def get_user_profile(self) -> SpotifyUserProfile:
        """Get the current user's Spotify profile."""
        data = await self._request("GET", "/me")
        return SpotifyUserProfile(**data)

    async def get_track(self, track_id: str) -> Optional[TrackResponse]:
        """Look up a track by id; None when Spotify does not know it."""
        try:
            data = await self._request("GET", f"/tracks/{track_id}")
        except SpotifyApiError as e:
            if e.status_code in (400, 404):
                return None
            raise
        return map_track(data)

    async def search_tracks(
        self,
        query: str,
        limit: int = 10,
        offset: int = 0,
        market: Optional[str] = None,
    ) -> TrackPage:
        """Search for tracks on Spotify."""
        if not query or not query.strip():
            raise ValueError("Query cannot be empty.")

        params = {
            "q": query,
            "type": "track",
            "limit": max(1, min(limit, 50)),
            "offset": max(0, offset),
        }
        if market:
            params["market"] = market

        data = await self._request("GET", "/search", params=params)
        tracks = data.get("tracks")
        if tracks is None:
            raise SpotifyApiError("Spotify search response has no tracks")

        return TrackPage(
            items=[map_track(item) for item in tracks.get("items") or [] if item],
            limit=tracks.get("limit", params["limit"]),
            offset=tracks.get("offset", params["offset"]),
            total=tracks.get("total", 0),
            has_next=bool(tracks.get("next")),
            next_offset=_next_offset(tracks.get("next")),
        )

    async def add_track_to_playlist(
        self, playlist: str, track: str
    ) -> Optional[str]:
        """
        Insert a track at the top of a playlist and return the new snapshot id.

        A 429 response is retried once when Spotify asks us to wait no longer
        than MAX_RETRY_AFTER_SECONDS.
        """
        playlist_id = get_playlist_id(playlist)
        track_id = get_track_id(track)
        if playlist_id is None or track_id is None:
            raise ValueError("Invalid playlist ID or track ID.")

        endpoint = f"/playlists/{playlist_id}/tracks"
        data = {"uris": [f"spotify:track:{track_id}"], "position": 0}

        response = await self._send("POST", endpoint, data=data)

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After", "")
            if retry_after.isdigit() and int(retry_after) <= MAX_RETRY_AFTER_SECONDS:
                logger.info(f"Spotify rate limited playlist add, retrying in {retry_after}s")
                await asyncio.sleep(int(retry_after))
                response = await self._send("POST", endpoint, data=data)

        body = self._parse(response, endpoint)
        return body.get("snapshot_id")

    async def get_user_playlists(self, limit: int = 50, offset: int = 0) -> PlaylistPage:
        """List the playlists owned or followed by the current user."""
        params = {"limit": max(1, min(limit, 50)), "offset": max(0, offset)}
        data = await self._request("GET", "/me/playlists", params=params)

        items = []
        for item in data.get("items") or []:
            if not item:
                continue
            images = item.get("images") or []
            items.append(
                PlaylistSummary(
                    id=item["id"],
                    name=item.get("name") or "",
                    description=item.get("description"),
                    public=item.get("public"),
                    uri=item.get("uri") or "",
                    image_url=images[0].get("url", "") if images else "",
                )
            )

        return PlaylistPage(
            items=items,
            limit=data.get("limit", params["limit"]),
            offset=data.get("offset", params["offset"]),
            total=data.get("total", len(items)),
        )
