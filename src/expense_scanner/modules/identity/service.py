from __future__ import annotations

import logging

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from expense_scanner.core.logging import get_logger, log_event
from expense_scanner.core.security import hash_password, verify_password
from expense_scanner.modules.identity.models import User

logger = get_logger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user_by_email(session: Session, *, email: str) -> User | None:
    return session.scalar(select(User).where(User.email == normalize_email(email)))


def create_user(
    session: Session,
    *,
    email: str,
    password: str,
    full_name: str | None = None,
) -> User:
    """Register a receipt owner. Emails are stored lower-cased and must be unique."""
    if get_user_by_email(session, email=email) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")

    user = User(
        email=normalize_email(email),
        full_name=full_name,
        password_hash=hash_password(password),
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    log_event(logger, "identity.user.created", user_id=str(user.id))
    return user


def authenticate_user(session: Session, *, email: str, password: str) -> User:
    user = get_user_by_email(session, email=email)
    if user is None or not user.is_active or not verify_password(password, user.password_hash):
        log_event(logger, "identity.login.failure", level=logging.WARNING)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    log_event(logger, "identity.login.success", user_id=str(user.id))
    return user
