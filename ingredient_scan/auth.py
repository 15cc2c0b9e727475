from datetime import datetime, timedelta, timezone
from typing import Any, Optional
import uuid

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from ingredient_scan.config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, JWT_SECRET_KEY
from ingredient_scan.errors import Unauthenticated

bearer_scheme = HTTPBearer(auto_error=False)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_access_token(user_id: str, additional_claims: Optional[dict[str, Any]] = None) -> str:
    now = _now()
    payload: dict[str, Any] = {
        "sub": user_id,
        "type": "access",
        "jti": uuid.uuid4().hex,
        "iat": int(now.timestamp()),
        "exp": now + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    if additional_claims:
        payload.update(additional_claims)
    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def user_id_from_token(token: Optional[str]) -> str:
    if not token:
        raise Unauthenticated("User must be authenticated")
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise Unauthenticated("Invalid authentication credentials")

    if payload.get("type") != "access" or not payload.get("sub"):
        raise Unauthenticated("Invalid authentication credentials")
    return str(payload["sub"])


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    return user_id_from_token(credentials.credentials if credentials else None)
