import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from focusgo.config import settings


def issue_access_token(user_id: str | uuid.UUID) -> str:
    """Issue a bearer token in the format the identity provider hands out."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": "access",
        "iat": now,
        "exp": now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> uuid.UUID:
    """Return the user id carried by an access token, or raise ValueError."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise ValueError("Invalid access token")

    if payload.get("type") != "access":
        raise ValueError("Not an access token")

    try:
        return uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise ValueError("Invalid token subject")
