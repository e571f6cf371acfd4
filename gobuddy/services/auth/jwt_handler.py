import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional

from gobuddy.core.config import settings

ACCESS_TOKEN_EXPIRE_MINUTES = 60
ADMIN_ROLE = "admin"


def create_access_token(user_id: str, role: Optional[str] = None, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    payload = {
        "user_id": user_id,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes),
    }
    if role:
        payload["role"] = role
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str):
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return payload
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None

