"""Input validation helpers for accounts and rooms."""

import re

from email_validator import EmailNotValidError, validate_email

MAX_USERNAME_LENGTH = 50
MIN_PASSWORD_LENGTH = 8

PASSWORD_RULES_MESSAGE = (
    "Password must be at least 8 characters long and include uppercase, "
    "lowercase, digit, and special character."
)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_email_valid(email: str) -> bool:
    """Check the address syntax; the domain is not looked up."""
    try:
        validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def is_password_valid(password: str) -> bool:
    """Require length, upper and lower case letters, a digit and a special character."""
    if len(password) < MIN_PASSWORD_LENGTH:
        return False
    if not re.search(r"[A-Z]", password):
        return False
    if not re.search(r"[a-z]", password):
        return False
    if not re.search(r"[0-9]", password):
        return False
    if not re.search(r"[\W_]", password):
        return False
    return True


def generate_slug(value: str) -> str:
    """
    Build a URL-friendly slug from a room name.

    "My Party  Room!" -> "my-party-room"
    """
    slug = value.lower()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^a-z0-9\-]", "", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")
