"""Pydantic response schemas for API endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    db: str
    version: str = "1.0.0"


# ── Categories ────────────────────────────────────────────────────────────────


class CategoryRead(BaseModel):
    id: int
    category_name: str
    description: Optional[str]
    level: int
    category_type: str
    parent_id: Optional[int]
    ancestry_path: list[int]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CategoryTreeNode(CategoryRead):
    subcategories: list[CategoryTreeNode] = []


class CategoryChildRead(CategoryRead):
    child_count: int = 0


class ParentCategoryRead(CategoryRead):
    subcategory_count: int = 0
    product_count: int = 0


class DropdownCategory(BaseModel):
    id: int
    category_name: str
    level: int
    parent_id: Optional[int]

    class Config:
        from_attributes = True


class BulkCategoryError(BaseModel):
    index: int
    category_name: str
    error: str
    detail: str


class BulkCategoryResponse(BaseModel):
    created: list[CategoryRead]
    errors: list[BulkCategoryError]


class CategoryDeleteResponse(BaseModel):
    deleted_ids: list[int]


# ── Products ──────────────────────────────────────────────────────────────────


class ProductRead(BaseModel):
    id: int
    product_name: str
    code: str
    main_category_id: Optional[int]
    sub_category_id: Optional[int]
    sub_sub_category_id: Optional[int]
    price: float
    quantity: float
    unit: str
    description: Optional[str]
    product_image: Optional[str]
    product_gallery: list[str]
    image_url: Optional[str] = None
    gallery_urls: list[str] = []
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProductListResponse(BaseModel):
    total: int
    page: int
    page_size: int
    items: list[ProductRead]


class ProductGalleryRead(BaseModel):
    product_id: int
    gallery: list[str]
    gallery_urls: list[str]


# ── Quotations ────────────────────────────────────────────────────────────────


class QuotationItemRead(BaseModel):
    id: int
    position: int
    product_id: Optional[int]
    product_name: str
    description: Optional[str]
    quantity: float
    unit_price: float
    total_price: float
    category: Optional[str]
    code: Optional[str]
    unit: Optional[str]

    class Config:
        from_attributes = True


class PaymentRead(BaseModel):
    id: int
    position: int
    amount_received: float
    payment_date: datetime
    payment_method: str
    reference_number: Optional[str]
    notes: Optional[str]

    class Config:
        from_attributes = True


class TransactionRead(BaseModel):
    id: int
    seq: int
    type: str
    amount: float
    tax_type: Optional[str]
    tax_percentage: Optional[float]
    discount_reason: Optional[str]
    balance_after: float
    date: datetime
    note: Optional[str]
    payment_mode: Optional[str]
    transaction_id: Optional[str]
    attachment: Optional[str]

    class Config:
        from_attributes = True


class QuotationRead(BaseModel):
    id: int
    quotation_number: str
    quotation_name: str
    client_name: str
    subject: str
    client_id: Optional[int]
    date: datetime
    terms_and_conditions: Optional[str]
    status: str
    cgst: float
    sgst: float
    other_tax: float
    discount: float
    subtotal: float
    tax: float
    total: float
    running_balance: float
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class QuotationDetail(QuotationRead):
    items: list[QuotationItemRead] = []
    payments: list[PaymentRead] = []
    transactions: list[TransactionRead] = []
    paid: float = 0.0
    due: float = 0.0


class QuotationListResponse(BaseModel):
    total: int
    page: int
    page_size: int
    items: list[QuotationRead]


class TransactionListResponse(BaseModel):
    quotation_id: int
    running_balance: float
    transactions: list[TransactionRead]


# ── Client finance ────────────────────────────────────────────────────────────


class ClientRead(BaseModel):
    id: int
    name: str
    email: Optional[str]
    phone: Optional[str]
    gstin: Optional[str]
    address: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ClientTransactionRead(BaseModel):
    id: int
    quotation_id: Optional[int]
    quotation_number: Optional[str]
    client_id: int
    type: str
    amount: float
    date: datetime
    payment_mode: Optional[str]
    transaction_id: Optional[str]
    note: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class FinanceSummary(BaseModel):
    quotation_id: int
    quotation_number: str
    client: Optional[ClientRead]
    quotation_total: float
    total_credited: float
    total_debited: float
    profit: float
    paid: float
    due: float
    transactions: list[ClientTransactionRead]


class QuotationNumberRead(BaseModel):
    id: int
    quotation_number: str
