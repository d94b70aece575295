"""
Dependency injection functions for the API.
"""

import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from typing import Optional

from app.db.session import get_db
from app.db.models import Room, User
from app.core.permissions import ensure_owner
from app.core.security import verify_token


# Database dependency
db_dependency = get_db

# OAuth2 scheme for token extraction from Authorization header
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="api/users/login",
    auto_error=False,  # Raise our own 401 with a consistent message
)


def parse_uuid(value: str, detail: str = "Not found") -> uuid.UUID:
    """Parse an id from the path; malformed ids are treated as unknown ones."""
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


async def get_token(token: Optional[str] = Depends(oauth2_scheme)) -> str:
    """Extract the bearer token from the Authorization header."""
    if token:
        return token

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    token: str = Depends(get_token), db: Session = Depends(get_db)
) -> User:
    """
    Get the current authenticated user from a JWT token.

    Verifies the token and fetches the corresponding user from the database.
    """
    try:
        payload = verify_token(token)
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user",
        )

    return user


async def get_owned_room(
    room_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Room:
    """
    Load the room from the path and make sure the caller owns it.

    Missing room -> 404, someone else's room -> 403.
    """
    room = db.get(Room, parse_uuid(room_id, "Room not found"))
    if room is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")

    ensure_owner(user, room.user_id, detail="You do not own this room")
    return room
