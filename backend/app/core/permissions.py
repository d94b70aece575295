"""
Ownership checks shared by every owner-scoped route.
"""

from fastapi import HTTPException, status

from app.db.models import User


def is_owner(user: User, owner_id) -> bool:
    """True when `user` is the owner identified by `owner_id`. Fails closed."""
    if user is None or owner_id is None or user.id is None:
        return False
    return str(user.id) == str(owner_id)


def ensure_owner(user: User, owner_id, detail: str = "You do not own this resource") -> None:
    """Raise 403 unless `user` owns the resource."""
    if not is_owner(user, owner_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
