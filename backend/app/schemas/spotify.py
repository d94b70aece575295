from datetime import datetime
from pydantic import BaseModel
from typing import List, Optional, Dict, Any


class SpotifyTokenSchema(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 3600
    refresh_token: Optional[str] = None
    scope: Optional[str] = None


class OAuthLinkResponse(BaseModel):
    url: str


class SpotifyConnectResponse(BaseModel):
    """Returned after the authorization code has been exchanged."""

    access_token: str
    expires_at: datetime
    spotify_id: Optional[str] = None


class SpotifyUserProfile(BaseModel):
    id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    images: Optional[List[Dict[str, Any]]] = None
    uri: str


class TrackResponse(BaseModel):
    """Flattened view of a Spotify track."""

    id: str
    name: str
    artist: str
    album: str
    album_image_url: str = ""
    duration_ms: int = 0
    uri: str = ""
    explicit: bool = False
    external_url: str = ""


class TrackPage(BaseModel):
    items: List[TrackResponse]
    limit: int
    offset: int
    total: int
    has_next: bool
    next_offset: Optional[int] = None


class PlaylistSummary(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    public: Optional[bool] = None
    uri: str = ""
    image_url: str = ""


class PlaylistPage(BaseModel):
    items: List[PlaylistSummary]
    limit: int
    offset: int
    total: int
