from __future__ import annotations

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from expense_scanner.core.models import Base, Timestamped, UserOwned, UUIDPrimaryKey


class Category(UUIDPrimaryKey, Timestamped, UserOwned, Base):
    __tablename__ = "taxonomy_category"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_category_user_name"),)

    name: Mapped[str] = mapped_column(String(50))
    description: Mapped[str | None] = mapped_column(String(200), nullable=True)
    color: Mapped[str] = mapped_column(String(7), default="#006BFF")


class Tag(UUIDPrimaryKey, Timestamped, UserOwned, Base):
    __tablename__ = "taxonomy_tag"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_tag_user_name"),)

    name: Mapped[str] = mapped_column(String(30))
    color: Mapped[str] = mapped_column(String(7), default="#6B7280")
