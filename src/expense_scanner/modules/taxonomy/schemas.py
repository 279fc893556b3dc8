from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    description: str | None = Field(default=None, max_length=200)
    color: str | None = Field(default=None, pattern=_HEX_COLOR)


class CategoryOut(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None
    color: str


class CategoryListOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    categories: list[str]
    user_categories: list[str]


class TagCreate(BaseModel):
    name: str = Field(min_length=1, max_length=30)
    color: str | None = Field(default=None, pattern=_HEX_COLOR)


class TagOut(BaseModel):
    id: uuid.UUID
    name: str
    color: str
