from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, UUID
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.utils.datetime_helper import utc_now_naive


class Room(Base):
    """A shareable session where guests propose songs to the owner."""

    user_id = Column(
        UUID(as_uuid=True), ForeignKey("user.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(100), nullable=False)
    slug = Column(String(120), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    market = Column(String(2), default="CH", nullable=False)
    spotify_playlist_id = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=utc_now_naive, nullable=False)
    # Bumped whenever guests interact with the room, drives inactivity cleanup
    last_update = Column(DateTime, default=utc_now_naive, nullable=False)

    # Relationships
    owner = relationship("User", back_populates="rooms")
    songs = relationship("Song", back_populates="room", cascade="all, delete-orphan")
    codes = relationship(
        "RoomCode", back_populates="room", cascade="all, delete-orphan"
    )
