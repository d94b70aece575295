from sqlalchemy import Column, DateTime, ForeignKey, String, UUID
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.utils.datetime_helper import utc_now_naive


class RoomCode(Base):
    """Short-lived code granting access to a room without its password."""

    code = Column(String(16), unique=True, index=True, nullable=False)
    room_id = Column(
        UUID(as_uuid=True), ForeignKey("room.id", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(DateTime, default=utc_now_naive, nullable=False)
    expires_at = Column(DateTime, nullable=False)

    # Relationships
    room = relationship("Room", back_populates="codes")
