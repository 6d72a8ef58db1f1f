"""SQLModel model for the three-level product category tree."""
from typing import Optional
from datetime import datetime
from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field

from backoffice.core.timeutil import utcnow

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50
DESC_MAX_LENGTH = 500

# Levels are 0-based: parent (0), sub (1), sub-sub (2)
MAX_LEVEL = 2
CATEGORY_TYPES = {
    0: "parentcategory",
    1: "subcategory",
    2: "sub-subcategory",
}


class Category(SQLModel, table=True):
    """
    A node of the category tree.

    ``parent_id`` is the only stored parent/child link; children are always
    looked up by query. ``ancestry_path`` lists ancestor ids from the root
    down to the immediate parent, excluding the node itself.
    """

    __tablename__ = "categories"

    id: Optional[int] = Field(default=None, primary_key=True)
    # Unique across every level, not just among siblings
    category_name: str = Field(index=True, unique=True, max_length=NAME_MAX_LENGTH)
    description: Optional[str] = Field(default=None, max_length=DESC_MAX_LENGTH)
    level: int = Field(default=0, index=True)
    category_type: str = Field(default=CATEGORY_TYPES[0])
    parent_id: Optional[int] = Field(default=None, foreign_key="categories.id", index=True)
    ancestry_path: list[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
