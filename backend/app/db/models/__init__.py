from app.db.models.user import User
from app.db.models.room import Room
from app.db.models.room_code import RoomCode
from app.db.models.song import Song, SongStatus
from app.db.models.token import Token
from app.db.models.spotify_state import SpotifyState

__all__ = [
    "User",
    "Room",
    "RoomCode",
    "Song",
    "SongStatus",
    "Token",
    "SpotifyState",
]
