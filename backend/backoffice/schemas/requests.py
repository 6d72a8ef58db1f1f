"""Pydantic request schemas (shape-level validation only).

Range and cross-record rules (name uniqueness, depth, status gates, payment
limits) live in the services so they hold for every caller, not just HTTP.
"""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from backoffice.models.quotation import PaymentMethod, TaxType, TransactionType


def _strip(v: Optional[str]) -> Optional[str]:
    return v.strip() if isinstance(v, str) else v


# ── Categories ────────────────────────────────────────────────────────────────


class CategoryNodeIn(BaseModel):
    """A category plus, optionally, the subtree to create beneath it."""

    category_name: str
    description: Optional[str] = None
    subcategories: list[CategoryNodeIn] = []

    strip_text = field_validator("category_name", "description")(_strip)


class CategoryChildrenIn(BaseModel):
    subcategories: list[CategoryNodeIn] = Field(min_length=1)


class CategoryLeafIn(BaseModel):
    category_name: str
    description: Optional[str] = None

    strip_text = field_validator("category_name", "description")(_strip)


class CategoryUpdate(BaseModel):
    category_name: Optional[str] = None
    description: Optional[str] = None

    strip_text = field_validator("category_name", "description")(_strip)


# ── Products ──────────────────────────────────────────────────────────────────


class ProductIn(BaseModel):
    product_name: str
    code: str
    main_category_id: int
    sub_category_id: Optional[int] = None
    sub_sub_category_id: Optional[int] = None
    price: float = Field(ge=0)
    quantity: float = Field(default=0, ge=0)
    unit: str
    description: Optional[str] = None
    product_image: Optional[str] = None
    product_gallery: list[str] = []

    strip_text = field_validator("product_name", "code", "unit")(_strip)


class ProductUpdate(BaseModel):
    product_name: Optional[str] = None
    code: Optional[str] = None
    main_category_id: Optional[int] = None
    sub_category_id: Optional[int] = None
    sub_sub_category_id: Optional[int] = None
    price: Optional[float] = Field(default=None, ge=0)
    quantity: Optional[float] = Field(default=None, ge=0)
    unit: Optional[str] = None
    description: Optional[str] = None
    product_image: Optional[str] = None
    product_gallery: Optional[list[str]] = None
    is_active: Optional[bool] = None


# ── Quotations ────────────────────────────────────────────────────────────────


class QuotationItemIn(BaseModel):
    """
    A line item. Either spell the product out (``product_name`` and
    ``unit_price``) or reference a catalog ``product_id`` and let the catalog
    fill the gaps. Any ``total_price`` sent by the client is ignored.
    """

    product_id: Optional[int] = None
    product_name: Optional[str] = None
    description: Optional[str] = None
    quantity: float = Field(gt=0)
    unit_price: Optional[float] = Field(default=None, ge=0)
    category: Optional[str] = None
    code: Optional[str] = None
    unit: Optional[str] = None

    strip_text = field_validator("product_name", "category", "code", "unit")(_strip)


class FinancialDetailsIn(BaseModel):
    cgst: float = Field(default=0, ge=0)
    sgst: float = Field(default=0, ge=0)
    other_tax: float = Field(default=0, ge=0)
    discount: float = Field(default=0, ge=0)


class QuotationHeaderIn(BaseModel):
    quotation_name: str = Field(min_length=1)
    client_name: str = Field(min_length=1)
    subject: str = Field(min_length=1)
    client_id: Optional[int] = None
    date: Optional[datetime] = None
    terms_and_conditions: Optional[str] = None

    strip_text = field_validator("quotation_name", "client_name", "subject", mode="before")(_strip)


class QuotationCreate(QuotationHeaderIn):
    items: list[QuotationItemIn] = Field(min_length=1)
    cgst: float = Field(default=0, ge=0)
    sgst: float = Field(default=0, ge=0)
    other_tax: float = Field(default=0, ge=0)
    discount: float = Field(default=0, ge=0)


class QuotationProductsIn(BaseModel):
    items: list[QuotationItemIn] = Field(min_length=1)


class QuotationUpdate(BaseModel):
    quotation_name: Optional[str] = Field(default=None, min_length=1)
    client_name: Optional[str] = Field(default=None, min_length=1)
    subject: Optional[str] = Field(default=None, min_length=1)
    client_id: Optional[int] = None
    date: Optional[datetime] = None
    terms_and_conditions: Optional[str] = None
    items: Optional[list[QuotationItemIn]] = Field(default=None, min_length=1)
    cgst: Optional[float] = Field(default=None, ge=0)
    sgst: Optional[float] = Field(default=None, ge=0)
    other_tax: Optional[float] = Field(default=None, ge=0)
    discount: Optional[float] = Field(default=None, ge=0)

    strip_text = field_validator("quotation_name", "client_name", "subject", mode="before")(_strip)


class PaymentIn(BaseModel):
    amount_received: float = Field(gt=0)
    payment_date: Optional[datetime] = None
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class TransactionIn(BaseModel):
    type: TransactionType
    amount: float = Field(gt=0)
    date: Optional[datetime] = None
    note: Optional[str] = None
    payment_mode: Optional[str] = None
    transaction_id: Optional[str] = None
    tax_type: Optional[TaxType] = None
    tax_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    discount_reason: Optional[str] = None
    attachment: Optional[str] = None


# ── Client finance ────────────────────────────────────────────────────────────


class ClientIn(BaseModel):
    name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    gstin: Optional[str] = None
    address: Optional[str] = None

    strip_text = field_validator("name", mode="before")(_strip)


class ClientTransactionIn(BaseModel):
    quotation_id: Optional[int] = None
    quotation_number: Optional[str] = None
    client_id: Optional[int] = None
    type: Literal["credit", "debit"]
    amount: float = Field(gt=0)
    date: Optional[datetime] = None
    payment_mode: Optional[str] = None
    transaction_id: Optional[str] = None
    note: Optional[str] = None
