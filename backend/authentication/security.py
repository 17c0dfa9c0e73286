import os
from datetime import datetime, timedelta, timezone
from typing import Iterable

from jose import jwt

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "720"))


def create_access_token(
    user_id: str | int,
    role: str | None = None,
    permissions: Iterable[str] = (),
    expires_delta: timedelta | None = None,
) -> str:
    """
    Issue a portal token. The import and analytics routes only read
    `sub`, `role` and `permissions`; accounts live in the portal's user service.
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {
        "sub": str(user_id),
        "role": role,
        "permissions": sorted(set(permissions)),
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
