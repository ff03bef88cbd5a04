"""Data models for the benchmark API.

This module defines the SQLModel models used by the API: Category and Item,
plus the request bodies accepted on create/update.

Item holds a one-way reference to its Category. Category deliberately has no
``items`` collection; the items owned by a category are reached through
``ItemRepository.find_by_category`` so neither side serializes the other.

Copyright (c) Bryn Gwalad 2025
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, Relationship, SQLModel


class CategoryBase(SQLModel):
    code: str = Field(min_length=1, max_length=32, unique=True, index=True)
    name: str = Field(min_length=1, max_length=128)


class Category(CategoryBase, table=True):
    """A category grouping items.

    Attributes:
        id: primary key, assigned by storage
        code: unique business key
        name: display name
        updated_at: set by the repository on every insert/update
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    updated_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))


class CategoryIn(CategoryBase):
    """Body of POST/PUT /categories/."""


class ItemBase(SQLModel):
    sku: str = Field(min_length=1, max_length=64, unique=True, index=True)
    name: str = Field(min_length=1, max_length=128)
    description: Optional[str] = None
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    stock: int = Field(ge=0)
    category_id: Optional[int] = Field(default=None, foreign_key="category.id", index=True)


class Item(ItemBase, table=True):
    """A catalogue item.

    Attributes:
        id: primary key, assigned by storage
        sku: unique business key
        price: fixed-point amount, 10 digits with 2 decimals
        category_id: foreign key to Category (nullability is a deployment policy)
        category: the owning Category, lazy unless fetch-joined
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    updated_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    category: Optional[Category] = Relationship()


class ItemIn(ItemBase):
    """Body of POST/PUT /items/."""
