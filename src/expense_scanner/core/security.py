from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from expense_scanner.core.config import settings

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

_ALGORITHM = "HS256"
_OBJECT_TOKEN_AUDIENCE = "receipt-object"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(*, subject: str, expires_minutes: int | None = None) -> str:
    expire_minutes = expires_minutes or settings.access_token_exp_minutes
    expire = datetime.now(UTC) + timedelta(minutes=expire_minutes)
    payload: dict[str, Any] = {"sub": subject, "exp": expire}
    return jwt.encode(payload, settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> str | None:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    subject = payload.get("sub")
    return subject if isinstance(subject, str) else None


def create_object_token(*, key: str, expires_seconds: int) -> str:
    """Signed, expiring reference to a stored object (local backend download links)."""
    expire = datetime.now(UTC) + timedelta(seconds=expires_seconds)
    payload: dict[str, Any] = {"sub": key, "aud": _OBJECT_TOKEN_AUDIENCE, "exp": expire}
    return jwt.encode(payload, settings.secret_key, algorithm=_ALGORITHM)


def decode_object_token(token: str) -> str | None:
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[_ALGORITHM],
            audience=_OBJECT_TOKEN_AUDIENCE,
        )
    except JWTError:
        return None
    key = payload.get("sub")
    return key if isinstance(key, str) else None
