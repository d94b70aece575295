"""
Song proposal schema models.
"""

from datetime import datetime
from pydantic import BaseModel
from typing import Optional


class SongPropose(BaseModel):
    """A Spotify track link, URI or bare id."""

    uri: str = ""


class SongResponse(BaseModel):
    id: str
    room_id: str
    spotify_id: str
    title: str
    artist: str
    album: str
    album_art_url: str
    duration_ms: int
    uri: str
    explicit: bool
    status: str
    added_at: datetime

    @classmethod
    def from_song(cls, song) -> "SongResponse":
        return cls(
            id=str(song.id),
            room_id=str(song.room_id),
            spotify_id=song.spotify_id,
            title=song.title,
            artist=song.artist,
            album=song.album,
            album_art_url=song.album_art_url,
            duration_ms=song.duration_ms,
            uri=song.uri,
            explicit=song.explicit,
            status=getattr(song.status, "value", song.status),
            added_at=song.added_at,
        )


class ApprovedSongResponse(BaseModel):
    song: SongResponse
    snapshot_id: Optional[str] = None
