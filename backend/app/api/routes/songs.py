"""
Song proposal routes.

Guests propose tracks to an active room without an account; the room owner
lists and refuses proposals. Approval lives with the Spotify routes since it
writes to the owner's playlist.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.errors import spotify_http_error
from app.db.models import Room, Song, SongStatus, User
from app.db.session import get_db
from app.dependencies import get_current_user, get_owned_room, parse_uuid
from app.core.permissions import ensure_owner
from app.middleware.rate_limit import mutation_limiter, search_limiter
from app.schemas.song import SongPropose, SongResponse
from app.services.spotify.client import SpotifyClient, get_track_id
from app.services.spotify.errors import SpotifyError
from app.utils.datetime_helper import utc_now_naive

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/songs", tags=["songs"])


async def propose_song(db: Session, room_id: str, track_ref: str) -> Song:
    """
    Resolve `track_ref` on Spotify and add it to the room as a pending proposal.

    Raises HTTPException: unknown room (404), inactive room (400), invalid or
    unknown track (400/404), track already proposed in the room (409).
    """
    room = db.get(Room, parse_uuid(room_id, "Room not found"))
    if room is None:
        raise HTTPException(status_code=404, detail="Room not found")

    if not room.is_active:
        raise HTTPException(status_code=400, detail="Room is not active.")

    track_id = get_track_id(track_ref)
    if track_id is None:
        raise HTTPException(status_code=400, detail="Invalid Spotify track reference.")

    try:
        client = await SpotifyClient.for_app(db)
        track = await client.get_track(track_id)
    except SpotifyError as e:
        raise spotify_http_error(e)

    if track is None:
        raise HTTPException(status_code=404, detail="Track not found on Spotify.")

    duplicate = (
        db.query(Song.id)
        .filter(Song.room_id == room.id, Song.spotify_id == track.id)
        .first()
    )
    if duplicate is not None:
        raise HTTPException(
            status_code=409, detail="This song has already been proposed in this room."
        )

    now = utc_now_naive()
    song = Song(
        room_id=room.id,
        spotify_id=track.id,
        title=track.name,
        artist=track.artist,
        album=track.album,
        album_art_url=track.album_image_url,
        duration_ms=track.duration_ms,
        uri=track.uri,
        explicit=track.explicit,
        status=SongStatus.PENDING,
        added_at=now,
    )
    db.add(song)
    room.last_update = now
    db.commit()
    db.refresh(song)

    logger.info(f"Song {track.id} proposed in room {room.id}")
    return song


@router.get(
    "/room/{room_id}",
    response_model=List[SongResponse],
    dependencies=[Depends(search_limiter)],
)
async def list_room_songs(room: Room = Depends(get_owned_room), db: Session = Depends(get_db)):
    """All proposals of a room, newest first."""
    songs = (
        db.query(Song)
        .filter(Song.room_id == room.id)
        .order_by(Song.added_at.desc())
        .all()
    )
    return [SongResponse.from_song(song) for song in songs]


@router.get(
    "/room/{room_id}/status/{song_status}",
    response_model=List[SongResponse],
    dependencies=[Depends(search_limiter)],
)
async def list_room_songs_by_status(
    song_status: SongStatus,
    room: Room = Depends(get_owned_room),
    db: Session = Depends(get_db),
):
    songs = (
        db.query(Song)
        .filter(Song.room_id == room.id, Song.status == song_status)
        .order_by(Song.added_at.desc())
        .all()
    )
    return [SongResponse.from_song(song) for song in songs]


@router.post(
    "/room/{room_id}/{spotify_id}",
    response_model=SongResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(mutation_limiter)],
)
async def propose_by_id(room_id: str, spotify_id: str, db: Session = Depends(get_db)):
    """Propose a track by its Spotify catalog id."""
    song = await propose_song(db, room_id, spotify_id)
    return SongResponse.from_song(song)


@router.post(
    "/room/{room_id}",
    response_model=SongResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(mutation_limiter)],
)
async def propose_by_uri(room_id: str, data: SongPropose, db: Session = Depends(get_db)):
    """Propose a track by spotify:track URI or open.spotify.com link."""
    if not data.uri.strip():
        raise HTTPException(status_code=400, detail="A Spotify track URI is required.")

    song = await propose_song(db, room_id, data.uri)
    return SongResponse.from_song(song)


@router.post(
    "/{song_id}/refuse",
    response_model=SongResponse,
    dependencies=[Depends(mutation_limiter)],
)
async def refuse_song(
    song_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Refuse a pending proposal. Only the room owner may do this."""
    song = db.get(Song, parse_uuid(song_id, "Song not found"))
    if song is None:
        raise HTTPException(status_code=404, detail="Song not found")

    ensure_owner(user, song.room.user_id, detail="You do not own this room")

    if song.status != SongStatus.PENDING:
        raise HTTPException(status_code=409, detail="Only pending songs can be refused.")

    song.status = SongStatus.REFUSED
    db.commit()
    db.refresh(song)
    return SongResponse.from_song(song)
