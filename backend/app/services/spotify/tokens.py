"""
Bearer tokens for the Spotify Web API.

Two credential scopes are managed here:

* the application token, obtained with the client credentials flow and used
  for catalog reads (track lookup, search). It is cached in memory, persisted
  encrypted in the ``token`` table and refreshed by a single caller at a time.
* per-user tokens, obtained with the authorization code flow and used for
  playlist reads and writes. The user row is their only store; a refresh is
  serialized per user so concurrent requests do not rotate the same refresh
  token twice.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from app.core.encryption import EncryptionError, decrypt, encrypt
from app.db.models import Token, User
from app.services.spotify.auth import SpotifyAuthService
from app.services.spotify.errors import SpotifyApiError, SpotifyAuthRequiredError
from app.services.spotify.token_cache import TokenCache, is_fresh, token_cache
from app.utils.datetime_helper import make_aware, make_naive, utc_now

logger = logging.getLogger(__name__)

APP_TOKEN_KEY = "spotify:app"


def user_token_key(user_id) -> str:
    return f"spotify:user:{user_id}"


def _decrypt_or_none(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        return decrypt(value)
    except EncryptionError as e:
        logger.warning(f"Discarding undecryptable stored token: {e}")
        return None


async def get_app_token(db: Session, cache: TokenCache = token_cache) -> str:
    """
    Return a valid application access token.

    Order of lookup: memory cache, latest persisted token row, client
    credentials exchange. Only one coroutine performs the lookup while the
    cache is cold; the others wait on the lock and reuse its result.

    Raises:
        SpotifyConfigError: client id or secret is not configured
        SpotifyApiError: the token exchange failed
    """

    async def refresh() -> Tuple[str, datetime]:
        return await _load_or_request_app_token(db)

    return await cache.get_or_refresh(APP_TOKEN_KEY, refresh)


async def _load_or_request_app_token(db: Session) -> Tuple[str, datetime]:
    latest = db.query(Token).order_by(Token.created_at.desc()).first()
    if latest is not None and is_fresh(latest.expires_at):
        token = _decrypt_or_none(latest.access_token)
        if token:
            return token, make_aware(latest.expires_at)

    token_data = await SpotifyAuthService.get_client_credentials_token()

    now = utc_now()
    expires_at = now + timedelta(seconds=token_data.expires_in)
    db.add(
        Token(
            access_token=encrypt(token_data.access_token),
            expires_at=make_naive(expires_at),
            created_at=make_naive(now),
        )
    )
    db.commit()

    logger.info(f"Obtained new Spotify app token, expires at {expires_at.isoformat()}")
    return token_data.access_token, expires_at


async def get_user_token(
    db: Session, user: User, cache: TokenCache = token_cache
) -> str:
    """
    Return a valid access token for `user`, refreshing it when it has one
    minute or less left.

    Raises:
        SpotifyAuthRequiredError: the account is not connected, has no
            refresh token, or Spotify rejected the refresh
        SpotifyConfigError: client id or secret is not configured
    """
    if is_fresh(user.spotify_token_expiry):
        token = _decrypt_or_none(user.spotify_access_token)
        if token:
            return token

    async with cache.lock_for(user_token_key(user.id)):
        # A concurrent request may have refreshed the row while we waited
        db.refresh(user)
        if is_fresh(user.spotify_token_expiry):
            token = _decrypt_or_none(user.spotify_access_token)
            if token:
                return token

        refresh_token = _decrypt_or_none(user.spotify_refresh_token)
        if not refresh_token:
            raise SpotifyAuthRequiredError("User does not have a Spotify refresh token.")

        try:
            token_data = await SpotifyAuthService.refresh_token(refresh_token)
        except SpotifyApiError as e:
            logger.warning(f"Spotify token refresh failed for user {user.id}: {e}")
            raise SpotifyAuthRequiredError(
                "Spotify refused to refresh the access token."
            ) from e

        store_user_tokens(
            db,
            user,
            access_token=token_data.access_token,
            expires_in=token_data.expires_in,
            refresh_token=token_data.refresh_token,
        )
        logger.info(f"Refreshed Spotify token for user {user.id}")
        return token_data.access_token


def store_user_tokens(
    db: Session,
    user: User,
    access_token: str,
    expires_in: int,
    refresh_token: Optional[str] = None,
    spotify_id: Optional[str] = None,
) -> datetime:
    """
    Encrypt and persist a user's Spotify tokens. A missing refresh token keeps
    the stored one (Spotify does not always rotate it).

    Returns:
        The new expiry (UTC, aware)
    """
    expires_at = utc_now() + timedelta(seconds=expires_in)

    user.spotify_access_token = encrypt(access_token)
    user.spotify_token_expiry = make_naive(expires_at)
    if refresh_token:
        user.spotify_refresh_token = encrypt(refresh_token)
    if spotify_id:
        user.spotify_id = spotify_id

    db.commit()
    return expires_at
