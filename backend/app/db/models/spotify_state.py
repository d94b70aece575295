from sqlalchemy import Column, DateTime, ForeignKey, String, UUID

from app.db.base import Base
from app.utils.datetime_helper import utc_now_naive


class SpotifyState(Base):
    """One-time OAuth state value guarding the Spotify authorization redirect."""

    state = Column(String(64), unique=True, index=True, nullable=False)
    user_id = Column(
        UUID(as_uuid=True), ForeignKey("user.id", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(DateTime, default=utc_now_naive, nullable=False)
