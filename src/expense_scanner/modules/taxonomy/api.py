from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from expense_scanner.api.deps import get_current_user
from expense_scanner.core.db import db_session
from expense_scanner.modules.identity.models import User
from expense_scanner.modules.taxonomy.schemas import (
    CategoryCreate,
    CategoryListOut,
    CategoryOut,
    TagCreate,
    TagOut,
)
from expense_scanner.modules.taxonomy.service import (
    create_category,
    create_tag,
    list_category_names,
    list_tags,
    suggested_category_names,
)

router = APIRouter(tags=["taxonomy"])


@router.get("/categories", response_model=CategoryListOut)
def get_categories(
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> CategoryListOut:
    return CategoryListOut(
        categories=suggested_category_names(session, user_id=user.id),
        user_categories=list_category_names(session, user_id=user.id),
    )


@router.post("/categories", response_model=CategoryOut, status_code=201)
def add_category(
    payload: CategoryCreate,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> CategoryOut:
    category = create_category(
        session,
        user_id=user.id,
        name=payload.name,
        description=payload.description,
        color=payload.color,
    )
    return CategoryOut.model_validate(category, from_attributes=True)


@router.get("/tags", response_model=list[TagOut])
def get_tags(
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> list[TagOut]:
    tags = list_tags(session, user_id=user.id)
    return [TagOut.model_validate(t, from_attributes=True) for t in tags]


@router.post("/tags", response_model=TagOut, status_code=201)
def add_tag(
    payload: TagCreate,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> TagOut:
    tag = create_tag(session, user_id=user.id, name=payload.name, color=payload.color)
    return TagOut.model_validate(tag, from_attributes=True)
