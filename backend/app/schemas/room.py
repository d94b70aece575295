"""
Room and share code schema models.
"""

from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional


class RoomCreate(BaseModel):
    name: str = ""
    password: str = ""
    is_active: bool = True
    market: Optional[str] = None


class RoomUpdate(BaseModel):
    """All fields optional; only provided ones are applied."""

    name: Optional[str] = None
    is_active: Optional[bool] = None
    spotify_playlist_id: Optional[str] = None
    market: Optional[str] = None


class RoomPasswordChange(BaseModel):
    password: str = ""
    password_confirm: str = ""


class RoomAccess(BaseModel):
    """Password supplied by a guest to open a room by slug."""

    password: str = ""


class RoomCodeCreate(BaseModel):
    password: str = ""
    expires_in_hours: int = Field(default=1, ge=1, le=24)


class RoomResponse(BaseModel):
    id: str
    name: str
    slug: str
    is_active: bool
    market: str
    has_playlist: bool
    created_at: datetime
    last_update: datetime

    @classmethod
    def from_room(cls, room) -> "RoomResponse":
        return cls(
            id=str(room.id),
            name=room.name,
            slug=room.slug,
            is_active=room.is_active,
            market=room.market,
            has_playlist=bool(room.spotify_playlist_id),
            created_at=room.created_at,
            last_update=room.last_update,
        )


class OwnerRoomResponse(RoomResponse):
    """Room as seen by its owner, including the linked playlist."""

    spotify_playlist_id: Optional[str] = None

    @classmethod
    def from_room(cls, room) -> "OwnerRoomResponse":
        base = RoomResponse.from_room(room).model_dump()
        return cls(**base, spotify_playlist_id=room.spotify_playlist_id)


class RoomCodeResponse(BaseModel):
    code: str
    room_id: str
    created_at: datetime
    expires_at: datetime

    @classmethod
    def from_code(cls, code) -> "RoomCodeResponse":
        return cls(
            code=code.code,
            room_id=str(code.room_id),
            created_at=code.created_at,
            expires_at=code.expires_at,
        )
