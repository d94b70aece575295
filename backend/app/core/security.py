"""
Security utilities for JWT authentication and password hashing.
"""

import uuid
from datetime import timedelta
from typing import Any, Dict

from jose import jwt
from passlib.context import CryptContext

import os

from app.utils.datetime_helper import utc_now

# Security configuration
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
if not JWT_SECRET_KEY:
    if os.getenv("ENVIRONMENT") == "production":
        raise RuntimeError("JWT_SECRET_KEY must be set in production")
    JWT_SECRET_KEY = "dev-secret-key-never-use-in-production"

# JWT settings
ALGORITHM = "HS256"
JWT_ISSUER = os.getenv("JWT_ISSUER", "roomtunes")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "180"))

# Password hashing context, shared by user accounts and room passwords
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def create_access_token(data: Dict[str, Any]) -> str:
    """
    Create a JWT access token with a specified expiration time.

    Args:
        data: Payload data to include in the token, must contain "sub"

    Returns:
        Encoded JWT access token
    """
    to_encode = data.copy()

    # Set token expiration and a unique token id
    expire = utc_now() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update(
        {
            "exp": expire,
            "iss": JWT_ISSUER,
            "jti": str(uuid.uuid4()),
            "type": "access",
        }
    )

    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str, token_type: str = "access") -> Dict[str, Any]:
    """
    Decode and verify a JWT token.

    Args:
        token: JWT token to verify
        token_type: Expected value of the "type" claim

    Returns:
        Token payload if valid

    Raises:
        ValueError: If token is invalid, expired or has wrong type
    """
    try:
        payload = jwt.decode(
            token, JWT_SECRET_KEY, algorithms=[ALGORITHM], issuer=JWT_ISSUER
        )
    except jwt.JWTError:
        raise ValueError("Invalid token")

    if payload.get("type") != token_type:
        raise ValueError(f"Token is not a {token_type} token")

    return payload


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash.

    Args:
        plain_password: Plain text password
        hashed_password: Hashed password to compare against

    Returns:
        True if password matches hash, False otherwise
    """
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Unknown or malformed hash
        return False


def get_password_hash(password: str) -> str:
    """
    Hash a password for secure storage.

    Args:
        password: Plain text password to hash

    Returns:
        Securely hashed password
    """
    return pwd_context.hash(password)
