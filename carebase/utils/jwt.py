from datetime import timedelta
from typing import Optional, Tuple

from jose import JWTError, jwt

from carebase.core.config import settings
from carebase.utils.timezone import utcnow

ACCESS = "access"
REFRESH = "refresh"


def _create_token(*, user_id: int, token_type: str,
                  expires_delta: timedelta) -> str:
    now = utcnow()
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def create_access_token(user_id: int,
                        expires_delta: Optional[timedelta] = None) -> str:
    return _create_token(
        user_id=user_id,
        token_type=ACCESS,
        expires_delta=expires_delta
        or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_access_refresh(user_id: int) -> Tuple[str, str]:
    """
    Create access + refresh tokens for one user.
    """
    refresh = _create_token(
        user_id=user_id,
        token_type=REFRESH,
        expires_delta=timedelta(minutes=settings.REFRESH_TOKEN_EXPIRE_MINUTES),
    )
    return create_access_token(user_id), refresh


def decode_user_id(token: str, token_type: str = ACCESS) -> Optional[int]:
    """
    Returns the user id from a valid token of the given type, None for
    anything invalid (bad signature, expired, wrong type).
    """
    try:
        payload = jwt.decode(token,
                             settings.JWT_SECRET,
                             algorithms=[settings.JWT_ALG])
    except JWTError:
        return None
    if payload.get("type") != token_type:
        return None
    sub = payload.get("sub")
    try:
        return int(sub)
    except (TypeError, ValueError):
        return None
