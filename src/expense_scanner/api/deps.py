from __future__ import annotations

import logging
import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from expense_scanner.core.db import db_session
from expense_scanner.core.logging import get_logger, log_event, set_user_context
from expense_scanner.core.security import decode_access_token
from expense_scanner.modules.identity.models import User

bearer_scheme = HTTPBearer(auto_error=False)
logger = get_logger(__name__)


def _unauthorized(reason: str, *, detail: str = "Unauthorized") -> HTTPException:
    # Logged under the request id, so a rejected scan can be traced from its upload.
    log_event(logger, "auth.rejected", level=logging.WARNING, reason=reason)
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _subject_id(token: str) -> uuid.UUID:
    subject = decode_access_token(token)
    if not subject:
        raise _unauthorized("invalid_token", detail="Invalid token")
    try:
        return uuid.UUID(subject)
    except ValueError as e:
        raise _unauthorized("malformed_subject", detail="Invalid token") from e


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(db_session),
) -> User:
    """Resolve the bearer token to an active user; receipts are scoped to this id."""
    if credentials is None or not credentials.credentials:
        raise _unauthorized("missing_token")

    user = session.get(User, _subject_id(credentials.credentials))
    if user is None or not user.is_active:
        raise _unauthorized("unknown_or_inactive_user", detail="Invalid user")
    set_user_context(str(user.id))
    return user
