from sqlalchemy import Column, DateTime, Text

from app.db.base import Base
from app.utils.datetime_helper import utc_now_naive


class Token(Base):
    """Application-level Spotify access token (client credentials flow)."""

    access_token = Column(Text, nullable=False)  # encrypted
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utc_now_naive, nullable=False)
