"""
Room routes: owner management, password-gated lookup and share codes.
"""

import logging
import secrets
from datetime import timedelta
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.models import Room, RoomCode, User
from app.db.session import get_db
from app.dependencies import get_current_user, get_owned_room
from app.core.security import get_password_hash, verify_password
from app.middleware.rate_limit import mutation_limiter, search_limiter
from app.schemas.auth import MessageResponse
from app.schemas.room import (
    OwnerRoomResponse,
    RoomAccess,
    RoomCodeCreate,
    RoomCodeResponse,
    RoomCreate,
    RoomPasswordChange,
    RoomResponse,
    RoomUpdate,
)
from app.utils.datetime_helper import make_aware, utc_now_naive
from app.utils.validators import generate_slug

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rooms", tags=["rooms"])

MAX_ROOMS_PER_USER = 10
DEFAULT_MARKET = "CH"

CODE_LENGTH = 8
# No 0/O or 1/I so codes can be read out loud
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def _slug_taken(db: Session, slug: str, exclude_id=None) -> bool:
    query = db.query(Room.id).filter(Room.slug == slug)
    if exclude_id is not None:
        query = query.filter(Room.id != exclude_id)
    return query.first() is not None


def allocate_slug(db: Session, name: str, owner_id, exclude_id=None) -> str:
    """
    Slug for a room name, unique across all rooms.

    On collision the slug is suffixed with the short owner id, then with a
    counter until it is free; returns "" when the name has no usable characters.
    """
    slug = generate_slug(name)
    if not slug or not _slug_taken(db, slug, exclude_id):
        return slug

    base = f"{slug}-{str(owner_id)[:8]}"
    candidate = base
    counter = 2
    while _slug_taken(db, candidate, exclude_id):
        candidate = f"{base}-{counter}"
        counter += 1
    return candidate


def _commit_room(db: Session, room: Room) -> None:
    """Commit room changes; a slug claimed concurrently is a conflict."""
    slug = room.slug
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"Slug {slug} was taken by a concurrent request")
        raise HTTPException(
            status_code=409, detail="A room with this name already exists. Try again."
        )
    db.refresh(room)


def _name_taken(db: Session, owner_id, name: str, exclude_id=None) -> bool:
    query = db.query(Room.id).filter(Room.user_id == owner_id, Room.name == name)
    if exclude_id is not None:
        query = query.filter(Room.id != exclude_id)
    return query.first() is not None


def _normalize_market(market) -> str:
    market = (market or "").strip().upper()
    if len(market) != 2 or not market.isalpha():
        raise HTTPException(
            status_code=400, detail="Market must be a two-letter country code."
        )
    return market


def generate_room_code(db: Session) -> str:
    """Random share code not used by any stored code."""
    while True:
        code = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
        if db.query(RoomCode.id).filter(RoomCode.code == code).first() is None:
            return code


@router.get("/", response_model=List[OwnerRoomResponse])
async def list_rooms(
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    """All rooms owned by the caller."""
    rooms = (
        db.query(Room)
        .filter(Room.user_id == user.id)
        .order_by(Room.created_at.desc())
        .all()
    )
    return [OwnerRoomResponse.from_room(room) for room in rooms]


@router.get("/code/{code}", response_model=RoomResponse, dependencies=[Depends(search_limiter)])
async def redeem_code(code: str, db: Session = Depends(get_db)):
    """Open a room with a share code. Unknown and expired codes look the same."""
    room_code = (
        db.query(RoomCode).filter(RoomCode.code == code.strip().upper()).first()
    )
    if room_code is None or room_code.expires_at <= utc_now_naive():
        raise HTTPException(status_code=404, detail="Code not found or expired")

    return RoomResponse.from_room(room_code.room)


@router.post("/slug/{slug}", response_model=RoomResponse, dependencies=[Depends(search_limiter)])
async def get_room_by_slug(slug: str, data: RoomAccess, db: Session = Depends(get_db)):
    """Public lookup of a room by slug, gated by the room password."""
    if not data.password.strip():
        raise HTTPException(status_code=400, detail="Password is required.")

    room = db.query(Room).filter(Room.slug == slug).first()
    if room is None:
        raise HTTPException(status_code=404, detail="Room not found")

    if not verify_password(data.password, room.password_hash):
        raise HTTPException(status_code=401, detail="Invalid room password.")

    return RoomResponse.from_room(room)


@router.get("/{room_id}", response_model=OwnerRoomResponse)
async def get_room(room: Room = Depends(get_owned_room)):
    return OwnerRoomResponse.from_room(room)


@router.post("/", response_model=OwnerRoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    data: RoomCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a room owned by the caller."""
    if db.query(Room).filter(Room.user_id == user.id).count() >= MAX_ROOMS_PER_USER:
        raise HTTPException(
            status_code=400,
            detail=(
                f"You have reached the maximum number of rooms allowed "
                f"({MAX_ROOMS_PER_USER}). Delete an existing room first."
            ),
        )

    name = data.name.strip()
    if not name or not data.password.strip():
        raise HTTPException(status_code=400, detail="Name and password are required.")

    if _name_taken(db, user.id, name):
        raise HTTPException(
            status_code=409, detail="You already have a room with this name."
        )

    slug = allocate_slug(db, name, user.id)
    if not slug:
        raise HTTPException(
            status_code=400,
            detail="The room name results in an invalid slug. Choose a different name.",
        )

    market = _normalize_market(data.market) if data.market else DEFAULT_MARKET

    room = Room(
        user_id=user.id,
        name=name,
        slug=slug,
        password_hash=get_password_hash(data.password),
        is_active=data.is_active,
        market=market,
    )
    db.add(room)
    _commit_room(db, room)

    logger.info(f"User {user.id} created room {room.id} ({room.slug})")
    return OwnerRoomResponse.from_room(room)


@router.put("/{room_id}", response_model=OwnerRoomResponse)
async def update_room(
    data: RoomUpdate,
    room: Room = Depends(get_owned_room),
    db: Session = Depends(get_db),
):
    """
    Update the provided fields of a room.

    A new name regenerates the slug. A name already used by another of the
    owner's rooms is a conflict.
    """
    if data.name is not None and data.name.strip() and data.name.strip() != room.name:
        name = data.name.strip()
        if _name_taken(db, room.user_id, name, exclude_id=room.id):
            raise HTTPException(
                status_code=409, detail="You already have a room with this name."
            )

        if name.lower() != room.name.lower():
            slug = allocate_slug(db, name, room.user_id, exclude_id=room.id)
            if slug:
                room.slug = slug
        room.name = name

    if data.is_active is not None:
        room.is_active = data.is_active

    if data.spotify_playlist_id is not None:
        room.spotify_playlist_id = data.spotify_playlist_id.strip() or None

    if data.market is not None:
        room.market = _normalize_market(data.market)

    _commit_room(db, room)
    return OwnerRoomResponse.from_room(room)


@router.put("/{room_id}/password", response_model=OwnerRoomResponse)
async def change_room_password(
    data: RoomPasswordChange,
    room: Room = Depends(get_owned_room),
    db: Session = Depends(get_db),
):
    if not data.password.strip() or not data.password_confirm.strip():
        raise HTTPException(
            status_code=400, detail="Password and password confirmation are required."
        )
    if data.password != data.password_confirm:
        raise HTTPException(
            status_code=400, detail="Password and password confirmation do not match."
        )

    room.password_hash = get_password_hash(data.password)
    db.commit()
    db.refresh(room)
    return OwnerRoomResponse.from_room(room)


@router.delete("/{room_id}", response_model=MessageResponse)
async def delete_room(room: Room = Depends(get_owned_room), db: Session = Depends(get_db)):
    """Delete a room with its songs and codes."""
    room_id = room.id
    db.delete(room)
    db.commit()

    logger.info(f"Deleted room {room_id}")
    return {"message": "Room deleted successfully."}


@router.post(
    "/{room_id}/codes",
    response_model=RoomCodeResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(mutation_limiter)],
)
async def create_room_code(
    data: RoomCodeCreate,
    room: Room = Depends(get_owned_room),
    db: Session = Depends(get_db),
):
    """Issue a share code valid for `expires_in_hours`. Requires the room password."""
    if not data.password or not verify_password(data.password, room.password_hash):
        raise HTTPException(status_code=401, detail="Invalid room password.")

    now = utc_now_naive()
    room_code = RoomCode(
        code=generate_room_code(db),
        room_id=room.id,
        created_at=now,
        expires_at=now + timedelta(hours=data.expires_in_hours),
    )
    db.add(room_code)
    db.commit()
    db.refresh(room_code)

    logger.info(
        f"Issued code for room {room.id}, expires at {make_aware(room_code.expires_at)}"
    )
    return RoomCodeResponse.from_code(room_code)


@router.get("/{room_id}/codes", response_model=List[RoomCodeResponse])
async def list_room_codes(
    room: Room = Depends(get_owned_room), db: Session = Depends(get_db)
):
    """Codes of the room that have not expired yet."""
    codes = (
        db.query(RoomCode)
        .filter(RoomCode.room_id == room.id, RoomCode.expires_at > utc_now_naive())
        .order_by(RoomCode.expires_at)
        .all()
    )
    return [RoomCodeResponse.from_code(code) for code in codes]


@router.delete("/{room_id}/codes/{code}", response_model=MessageResponse)
async def delete_room_code(
    code: str,
    room: Room = Depends(get_owned_room),
    db: Session = Depends(get_db),
):
    room_code = (
        db.query(RoomCode)
        .filter(RoomCode.room_id == room.id, RoomCode.code == code.strip().upper())
        .first()
    )
    if room_code is None:
        raise HTTPException(status_code=404, detail="Code not found")

    db.delete(room_code)
    db.commit()
    return {"message": "Code deleted successfully."}
