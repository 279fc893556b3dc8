from __future__ import annotations

import uuid

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from expense_scanner.modules.taxonomy.models import Category, Tag

COMMON_CATEGORIES: tuple[str, ...] = (
    "Food & Dining",
    "Transportation",
    "Entertainment",
    "Shopping",
    "Bills & Utilities",
    "Healthcare",
    "Travel",
    "Education",
    "Salary",
    "Freelance",
    "Investment",
    "Business",
    "Other",
)


def list_categories(session: Session, *, user_id: uuid.UUID) -> list[Category]:
    return list(
        session.scalars(
            select(Category)
            .where(Category.user_id == user_id)
            .order_by(Category.created_at, Category.name)
        )
    )


def list_category_names(session: Session, *, user_id: uuid.UUID) -> list[str]:
    return [c.name for c in list_categories(session, user_id=user_id)]


def suggested_category_names(session: Session, *, user_id: uuid.UUID) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for name in [*list_category_names(session, user_id=user_id), *COMMON_CATEGORIES]:
        if name in seen:
            continue
        seen.add(name)
        out.append(name)
    return out


def create_category(
    session: Session,
    *,
    user_id: uuid.UUID,
    name: str,
    description: str | None = None,
    color: str | None = None,
) -> Category:
    name = name.strip()
    existing = session.scalar(
        select(Category).where(Category.user_id == user_id, Category.name == name)
    )
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Category already exists")
    category = Category(user_id=user_id, name=name, description=description)
    if color:
        category.color = color
    session.add(category)
    session.commit()
    session.refresh(category)
    return category


def list_tags(session: Session, *, user_id: uuid.UUID) -> list[Tag]:
    return list(
        session.scalars(
            select(Tag).where(Tag.user_id == user_id).order_by(Tag.created_at, Tag.name)
        )
    )


def list_tag_names(session: Session, *, user_id: uuid.UUID) -> list[str]:
    return [t.name for t in list_tags(session, user_id=user_id)]


def create_tag(
    session: Session,
    *,
    user_id: uuid.UUID,
    name: str,
    color: str | None = None,
) -> Tag:
    name = name.strip()
    existing = session.scalar(select(Tag).where(Tag.user_id == user_id, Tag.name == name))
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Tag already exists")
    tag = Tag(user_id=user_id, name=name)
    if color:
        tag.color = color
    session.add(tag)
    session.commit()
    session.refresh(tag)
    return tag
