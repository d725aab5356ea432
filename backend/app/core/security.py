import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from app.core.config import settings

ALGORITHM = "HS256"

# Claims carried in the session cookie, in the order clients expect them
SESSION_CLAIMS = ("id", "email", "name", "isOrganizer")


def generate_invite_token() -> str:
    """Opaque single-use token for magic links (CSPRNG, INVITE_TOKEN_BYTES of entropy)."""
    return secrets.token_urlsafe(settings.INVITE_TOKEN_BYTES)


def create_session_token(
    user_id: int,
    email: Optional[str],
    name: str,
    is_organizer: bool,
    expires_delta: Optional[timedelta] = None,
) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(days=settings.SESSION_EXPIRE_DAYS))
    to_encode = {
        "id": user_id,
        "email": email,
        "name": name,
        "isOrganizer": bool(is_organizer),
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_session_token(token: str) -> Optional[dict]:
    """Return the session claims, or None if the token is tampered, expired or malformed."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if not isinstance(payload.get("id"), int):
        return None
    return {key: payload.get(key) for key in SESSION_CLAIMS}


def restaurant_key_matches(candidate: Optional[str]) -> bool:
    expected = settings.RESTAURANT_ACCESS_KEY
    if not expected or not candidate:
        return False
    return secrets.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))
