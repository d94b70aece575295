"""
User account routes: registration, login, profile and Spotify connection.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.db.models import User
from app.db.session import get_db
from app.dependencies import get_current_user, parse_uuid
from app.core.security import create_access_token, get_password_hash, verify_password
from app.schemas.auth import (
    AuthResponse,
    MessageResponse,
    PasswordChange,
    PasswordConfirm,
    PublicUserResponse,
    SpotifyConnect,
    UserLogin,
    UserRegister,
    UserResponse,
    UserUpdate,
)
from app.services.spotify.tokens import store_user_tokens
from app.utils.validators import (
    MAX_USERNAME_LENGTH,
    PASSWORD_RULES_MESSAGE,
    is_email_valid,
    is_password_valid,
    normalize_email,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


def is_email_in_use(db: Session, email: str) -> bool:
    """Case-insensitive lookup of an existing account."""
    return (
        db.query(User.id)
        .filter(func.lower(User.email) == normalize_email(email))
        .first()
        is not None
    )


def _issue_token(user: User) -> str:
    return create_access_token(data={"sub": str(user.id)})


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(data: UserRegister, db: Session = Depends(get_db)):
    """Create an account and return it with a bearer token."""
    if (
        not data.username.strip()
        or not data.email.strip()
        or not data.password.strip()
        or not data.password_confirm.strip()
    ):
        raise HTTPException(
            status_code=400,
            detail="Username, email, password and password confirmation are required.",
        )

    if len(data.username.strip()) > MAX_USERNAME_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Username cannot exceed {MAX_USERNAME_LENGTH} characters.",
        )

    if not is_email_valid(data.email):
        raise HTTPException(status_code=400, detail="Invalid email format.")

    if not is_password_valid(data.password):
        raise HTTPException(status_code=400, detail=PASSWORD_RULES_MESSAGE)

    if data.password != data.password_confirm:
        raise HTTPException(
            status_code=400, detail="Password and password confirmation do not match."
        )

    if is_email_in_use(db, data.email):
        raise HTTPException(status_code=409, detail="Email is already in use.")

    user = User(
        username=data.username.strip(),
        email=normalize_email(data.email),
        password_hash=get_password_hash(data.password),
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"Registered user {user.id}")
    return AuthResponse(user=UserResponse.from_user(user), token=_issue_token(user))


@router.post("/login", response_model=AuthResponse)
async def login(data: UserLogin, db: Session = Depends(get_db)):
    """Exchange email and password for a bearer token."""
    if not data.email.strip() or not data.password:
        raise HTTPException(status_code=400, detail="Email and password are required.")

    user = (
        db.query(User)
        .filter(func.lower(User.email) == normalize_email(data.email))
        .first()
    )
    if user is None or not verify_password(data.password, user.password_hash):
        raise HTTPException(
            status_code=401,
            detail="Invalid email or password.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(status_code=403, detail="Inactive user")

    return AuthResponse(user=UserResponse.from_user(user), token=_issue_token(user))


@router.get("/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)):
    """Return the authenticated user."""
    return UserResponse.from_user(user)


@router.put("/me", response_model=UserResponse)
async def update_me(
    data: UserUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Update username and/or email.

    Values that are empty, too long, malformed or already taken are ignored.
    """
    if data.username and data.username.strip():
        username = data.username.strip()
        if len(username) <= MAX_USERNAME_LENGTH:
            user.username = username

    if data.email and data.email.strip():
        email = normalize_email(data.email)
        if (
            email != user.email
            and is_email_valid(email)
            and not is_email_in_use(db, email)
        ):
            user.email = email

    db.commit()
    db.refresh(user)
    return UserResponse.from_user(user)


@router.put("/me/password", response_model=MessageResponse)
async def change_password(
    data: PasswordChange,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Change the password after checking the current one."""
    if not data.password or not data.new_password or not data.new_password_confirm:
        raise HTTPException(
            status_code=400,
            detail="Current password, new password and confirmation are required.",
        )

    if not verify_password(data.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Current password is incorrect.")

    if not is_password_valid(data.new_password):
        raise HTTPException(status_code=400, detail=PASSWORD_RULES_MESSAGE)

    if data.new_password != data.new_password_confirm:
        raise HTTPException(
            status_code=400, detail="New password and confirmation do not match."
        )

    user.password_hash = get_password_hash(data.new_password)
    db.commit()
    return {"message": "Password updated successfully."}


@router.delete("/me", response_model=MessageResponse)
async def delete_me(
    data: PasswordConfirm,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete the account and everything it owns. Requires the password."""
    if not data.password:
        raise HTTPException(
            status_code=400, detail="Password is required to delete the account."
        )

    if not verify_password(data.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Password is incorrect.")

    user_id = user.id
    db.delete(user)
    db.commit()

    logger.info(f"Deleted user {user_id}")
    return {"message": "User deleted successfully."}


@router.put("/me/spotify", response_model=UserResponse)
async def connect_spotify(
    data: SpotifyConnect,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Store Spotify credentials obtained by the client. Tokens are encrypted at rest."""
    if not data.access_token.strip():
        raise HTTPException(status_code=400, detail="Access token is required.")
    if data.expires_in <= 0:
        raise HTTPException(status_code=400, detail="expires_in must be positive.")

    store_user_tokens(
        db,
        user,
        access_token=data.access_token.strip(),
        expires_in=data.expires_in,
        refresh_token=data.refresh_token.strip() if data.refresh_token else None,
        spotify_id=data.spotify_id.strip() if data.spotify_id else None,
    )
    db.refresh(user)
    return UserResponse.from_user(user)


@router.get("/{user_id}", response_model=PublicUserResponse)
async def get_user(user_id: str, db: Session = Depends(get_db)):
    """Public profile of another user."""
    user = db.get(User, parse_uuid(user_id, "User not found"))
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    return PublicUserResponse(
        id=str(user.id), username=user.username, created_at=user.created_at
    )
