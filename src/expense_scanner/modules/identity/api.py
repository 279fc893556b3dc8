from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from expense_scanner.api.deps import get_current_user
from expense_scanner.core.db import db_session
from expense_scanner.core.security import create_access_token
from expense_scanner.modules.identity.models import User
from expense_scanner.modules.identity.schemas import TokenOut, UserCreate, UserOut
from expense_scanner.modules.identity.service import authenticate_user, create_user

router = APIRouter(tags=["identity"])


@router.post("/auth/register", response_model=UserOut, status_code=201)
def register(payload: UserCreate, session: Session = Depends(db_session)) -> UserOut:
    user = create_user(
        session,
        email=str(payload.email),
        password=payload.password,
        full_name=payload.full_name,
    )
    return UserOut.model_validate(user, from_attributes=True)


@router.post("/auth/token", response_model=TokenOut)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: Session = Depends(db_session),
) -> TokenOut:
    user = authenticate_user(session, email=form_data.username, password=form_data.password)
    token = create_access_token(subject=str(user.id))
    return TokenOut(access_token=token)


@router.get("/auth/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)) -> UserOut:
    return UserOut.model_validate(user, from_attributes=True)
