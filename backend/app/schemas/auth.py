"""
User account schema models using Pydantic.
"""

from datetime import datetime
from pydantic import BaseModel, ConfigDict
from typing import Optional


class UserRegister(BaseModel):
    """Schema for a registration request."""

    username: str = ""
    email: str = ""
    password: str = ""
    password_confirm: str = ""


class UserLogin(BaseModel):
    """Schema for a login request."""

    email: str = ""
    password: str = ""


class UserUpdate(BaseModel):
    """Fields a user may change on their profile; invalid values are ignored."""

    username: Optional[str] = None
    email: Optional[str] = None


class PasswordChange(BaseModel):
    """Current password, new password and its confirmation."""

    password: str = ""
    new_password: str = ""
    new_password_confirm: str = ""


class PasswordConfirm(BaseModel):
    password: str = ""


class SpotifyConnect(BaseModel):
    """Spotify credentials obtained by the client and handed to the backend."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: int = 3600
    spotify_id: Optional[str] = None


class UserResponse(BaseModel):
    """Schema for user data in responses. Tokens are never exposed."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    email: str
    spotify_id: Optional[str] = None
    spotify_connected: bool = False
    created_at: datetime

    @classmethod
    def from_user(cls, user) -> "UserResponse":
        return cls(
            id=str(user.id),
            username=user.username,
            email=user.email,
            spotify_id=user.spotify_id,
            spotify_connected=bool(user.spotify_refresh_token),
            created_at=user.created_at,
        )


class PublicUserResponse(BaseModel):
    """What other users may see about an account."""

    id: str
    username: str
    created_at: datetime


class AuthResponse(BaseModel):
    """User plus the bearer token issued at register/login."""

    user: UserResponse
    token: str
    token_type: str = "bearer"


class MessageResponse(BaseModel):
    message: str
