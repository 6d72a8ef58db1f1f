"""SQLModel model for the product catalog."""
from typing import Optional
from datetime import datetime
from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field

from backoffice.core.timeutil import utcnow


class Product(SQLModel, table=True):
    """Catalog product, filed under up to three category levels."""

    __tablename__ = "products"

    id: Optional[int] = Field(default=None, primary_key=True)
    product_name: str = Field(index=True)
    code: str = Field(index=True, unique=True)

    # Category slots: level 0 / level 1 / level 2
    main_category_id: Optional[int] = Field(default=None, foreign_key="categories.id", index=True)
    sub_category_id: Optional[int] = Field(default=None, foreign_key="categories.id", index=True)
    sub_sub_category_id: Optional[int] = Field(default=None, foreign_key="categories.id", index=True)

    price: float = Field(default=0.0)
    quantity: float = Field(default=0.0)
    unit: str
    description: Optional[str] = None

    # Bare filenames; URLs come from the asset storage
    product_image: Optional[str] = None
    product_gallery: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
