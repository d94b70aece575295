"""
Sweep jobs that expire and delete stale rows.

Each job takes a session and the current time and issues bulk UPDATE/DELETE
statements, so it can run on a timer or be called directly with a fixed
clock. Running a job twice without new qualifying rows changes nothing.
"""

import logging
import os
from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from app.db.models import Room, RoomCode, Song, SongStatus, SpotifyState, Token
from app.utils.datetime_helper import make_naive, utc_now

logger = logging.getLogger(__name__)

PROPOSAL_REFUSE_AFTER_HOURS = float(os.getenv("PROPOSAL_REFUSE_AFTER_HOURS", "1"))
PROPOSAL_DELETE_AFTER_HOURS = float(os.getenv("PROPOSAL_DELETE_AFTER_HOURS", "5"))
ROOM_INACTIVE_AFTER_HOURS = float(os.getenv("ROOM_INACTIVE_AFTER_HOURS", "24"))
ROOM_DELETE_AFTER_DAYS = float(os.getenv("ROOM_DELETE_AFTER_DAYS", "30"))
SPOTIFY_STATE_EXPIRE_MINUTES = float(os.getenv("SPOTIFY_STATE_EXPIRE_MINUTES", "10"))


def _now(now: Optional[datetime]) -> datetime:
    return make_naive(now or utc_now())


def expire_proposals(
    db: Session,
    now: Optional[datetime] = None,
    refuse_after_hours: float = PROPOSAL_REFUSE_AFTER_HOURS,
    delete_after_hours: float = PROPOSAL_DELETE_AFTER_HOURS,
) -> Dict[str, int]:
    """Refuse proposals nobody approved in time, then delete old proposals."""
    now = _now(now)
    refuse_cutoff = now - timedelta(hours=refuse_after_hours)
    delete_cutoff = now - timedelta(hours=delete_after_hours)

    deleted = db.execute(
        delete(Song)
        .where(Song.added_at < delete_cutoff)
        .execution_options(synchronize_session=False)
    ).rowcount

    refused = db.execute(
        update(Song)
        .where(Song.status == SongStatus.PENDING, Song.added_at < refuse_cutoff)
        .values(status=SongStatus.REFUSED)
        .execution_options(synchronize_session=False)
    ).rowcount

    db.commit()

    logger.info(f"Refused {refused} and deleted {deleted} expired proposals")
    return {"refused": refused, "deleted": deleted}


def cleanup_rooms(
    db: Session,
    now: Optional[datetime] = None,
    inactive_after_hours: float = ROOM_INACTIVE_AFTER_HOURS,
    delete_after_days: float = ROOM_DELETE_AFTER_DAYS,
) -> Dict[str, int]:
    """Deactivate idle rooms, then delete rooms that stayed inactive for long."""
    now = _now(now)
    inactive_cutoff = now - timedelta(hours=inactive_after_hours)
    delete_cutoff = now - timedelta(days=delete_after_days)

    deactivated = db.execute(
        update(Room)
        .where(Room.is_active.is_(True), Room.last_update < inactive_cutoff)
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    ).rowcount

    stale_rooms = select(Room.id).where(
        Room.is_active.is_(False), Room.last_update < delete_cutoff
    )
    # Children first, bulk deletes bypass ORM cascades
    db.execute(
        delete(Song)
        .where(Song.room_id.in_(stale_rooms))
        .execution_options(synchronize_session=False)
    )
    db.execute(
        delete(RoomCode)
        .where(RoomCode.room_id.in_(stale_rooms))
        .execution_options(synchronize_session=False)
    )
    deleted = db.execute(
        delete(Room)
        .where(Room.is_active.is_(False), Room.last_update < delete_cutoff)
        .execution_options(synchronize_session=False)
    ).rowcount

    db.commit()

    logger.info(
        f"Marked {deactivated} rooms as inactive, deleted {deleted} rooms "
        f"inactive for more than {delete_after_days:g} days"
    )
    return {"deactivated": deactivated, "deleted": deleted}


def cleanup_room_codes(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
    """Delete share codes past their expiry."""
    now = _now(now)

    deleted = db.execute(
        delete(RoomCode)
        .where(RoomCode.expires_at <= now)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()

    logger.info(f"Deleted {deleted} expired room codes")
    return {"deleted": deleted}


def cleanup_spotify_states(
    db: Session,
    now: Optional[datetime] = None,
    expire_minutes: float = SPOTIFY_STATE_EXPIRE_MINUTES,
) -> Dict[str, int]:
    """Delete OAuth state values that were never consumed."""
    cutoff = _now(now) - timedelta(minutes=expire_minutes)

    deleted = db.execute(
        delete(SpotifyState)
        .where(SpotifyState.created_at < cutoff)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()

    logger.info(f"Deleted {deleted} Spotify OAuth states older than {cutoff}")
    return {"deleted": deleted}


def cleanup_tokens(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
    """Delete expired application tokens."""
    now = _now(now)

    deleted = db.execute(
        delete(Token)
        .where(Token.expires_at <= now)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()

    logger.info(f"Deleted {deleted} expired app tokens")
    return {"deleted": deleted}
