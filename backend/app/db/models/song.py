import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, String, UUID
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.utils.datetime_helper import utc_now_naive


class SongStatus(str, enum.Enum):
    """Lifecycle of a song proposal."""

    PENDING = "pending"
    APPROVED = "approved"
    REFUSED = "refused"


class Song(Base):
    """A track proposed by a guest for a room's playlist."""

    room_id = Column(
        UUID(as_uuid=True), ForeignKey("room.id", ondelete="CASCADE"), nullable=False
    )

    # Track details
    spotify_id = Column(String(50), index=True, nullable=False)
    title = Column(String(255), nullable=False)
    artist = Column(String(255), nullable=False)
    album = Column(String(255), nullable=False, default="")
    album_art_url = Column(String(500), nullable=False, default="")
    duration_ms = Column(Integer, nullable=False, default=0)
    uri = Column(String(100), nullable=False, default="")
    explicit = Column(Boolean, nullable=False, default=False)

    status = Column(
        Enum(SongStatus, values_callable=lambda e: [m.value for m in e]),
        default=SongStatus.PENDING,
        nullable=False,
    )
    added_at = Column(DateTime, default=utc_now_naive, nullable=False)

    # Relationships
    room = relationship("Room", back_populates="songs")
