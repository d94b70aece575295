"""
Spotify routes: account connection, catalog search, playlists and approval
of proposals onto a room's playlist.
"""

import logging
import secrets
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.errors import spotify_http_error
from app.db.models import Room, Song, SongStatus, SpotifyState, User
from app.db.session import get_db
from app.dependencies import get_current_user, get_owned_room, parse_uuid
from app.middleware.rate_limit import mutation_limiter, search_limiter
from app.schemas.song import ApprovedSongResponse, SongResponse
from app.schemas.spotify import (
    OAuthLinkResponse,
    PlaylistPage,
    SpotifyConnectResponse,
    TrackPage,
)
from app.services.cleanup import SPOTIFY_STATE_EXPIRE_MINUTES
from app.services.spotify.auth import SPOTIFY_SCOPES, SpotifyAuthService
from app.services.spotify.client import SpotifyClient
from app.services.spotify.errors import SpotifyError
from app.services.spotify.tokens import store_user_tokens
from app.utils.datetime_helper import utc_now_naive

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/spotify", tags=["spotify"])


@router.get("/oauth-link", response_model=OAuthLinkResponse)
async def get_oauth_link(
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    """Authorize URL for connecting the caller's Spotify account."""
    state = secrets.token_urlsafe(32)
    try:
        url = SpotifyAuthService.get_auth_url(scopes=SPOTIFY_SCOPES, state=state)
    except SpotifyError as e:
        raise spotify_http_error(e)

    db.add(SpotifyState(state=state, user_id=user.id, created_at=utc_now_naive()))
    db.commit()
    return {"url": url}


@router.get("/token", response_model=SpotifyConnectResponse)
async def exchange_code(
    code: str = "",
    state: str = "",
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Finish the authorization code flow.

    The state is consumed whatever the outcome. Unknown, expired or foreign
    states are rejected before talking to Spotify.
    """
    if not code or not state:
        raise HTTPException(status_code=400, detail="Code and state are required.")

    stored = db.query(SpotifyState).filter(SpotifyState.state == state).first()
    if stored is None:
        raise HTTPException(status_code=400, detail="Invalid or expired state.")

    db.delete(stored)
    db.commit()

    expired = stored.created_at <= utc_now_naive() - timedelta(
        minutes=SPOTIFY_STATE_EXPIRE_MINUTES
    )
    if expired or str(stored.user_id) != str(user.id):
        raise HTTPException(status_code=400, detail="Invalid or expired state.")

    try:
        token_data = await SpotifyAuthService.get_tokens(code)
        profile = await SpotifyClient(access_token=token_data.access_token).get_user_profile()
    except SpotifyError as e:
        raise spotify_http_error(e)

    expires_at = store_user_tokens(
        db,
        user,
        access_token=token_data.access_token,
        expires_in=token_data.expires_in,
        refresh_token=token_data.refresh_token,
        spotify_id=profile.id,
    )

    logger.info(f"User {user.id} connected Spotify account {profile.id}")
    return SpotifyConnectResponse(
        access_token=token_data.access_token,
        expires_at=expires_at,
        spotify_id=profile.id,
    )


@router.get("/search", response_model=TrackPage, dependencies=[Depends(search_limiter)])
async def search_tracks(
    q: str = "",
    offset: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=50),
    market: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Search the Spotify catalog with the application token."""
    if not q.strip():
        raise HTTPException(status_code=400, detail="Query cannot be empty.")

    try:
        client = await SpotifyClient.for_app(db)
        return await client.search_tracks(
            q.strip(),
            limit=limit,
            offset=offset,
            market=market.strip().upper() if market and market.strip() else None,
        )
    except SpotifyError as e:
        raise spotify_http_error(e)


@router.post(
    "/playlist/{room_id}/{song_id}",
    response_model=ApprovedSongResponse,
    dependencies=[Depends(mutation_limiter)],
)
async def approve_song(
    song_id: str,
    room: Room = Depends(get_owned_room),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Add a pending proposal to the room's playlist and mark it approved."""
    if not room.spotify_playlist_id:
        raise HTTPException(
            status_code=400, detail="This room has no linked Spotify playlist."
        )

    song = db.get(Song, parse_uuid(song_id, "Song not found"))
    if song is None or song.room_id != room.id:
        raise HTTPException(status_code=404, detail="Song not found in this room")

    if song.status != SongStatus.PENDING:
        raise HTTPException(status_code=409, detail="Only pending songs can be approved.")

    try:
        client = await SpotifyClient.for_user(db, user)
        snapshot_id = await client.add_track_to_playlist(
            room.spotify_playlist_id, song.spotify_id
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SpotifyError as e:
        raise spotify_http_error(e)

    song.status = SongStatus.APPROVED
    db.commit()
    db.refresh(song)

    logger.info(f"Song {song.spotify_id} approved in room {room.id}")
    return ApprovedSongResponse(song=SongResponse.from_song(song), snapshot_id=snapshot_id)


@router.get("/playlists", response_model=PlaylistPage, dependencies=[Depends(search_limiter)])
async def get_playlists(
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=50),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Playlists of the caller's connected Spotify account."""
    try:
        client = await SpotifyClient.for_user(db, user)
        return await client.get_user_playlists(limit=limit, offset=offset)
    except SpotifyError as e:
        raise spotify_http_error(e)
