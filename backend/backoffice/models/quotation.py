"""SQLModel models for quotations, their line items, payments and ledger."""
from enum import Enum
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field

from backoffice.core.timeutil import utcnow


class QuotationStatus(str, Enum):
    DRAFT = "Draft"
    SENT = "Sent"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class PaymentMethod(str, Enum):
    CASH = "Cash"
    BANK_TRANSFER = "Bank Transfer"
    CREDIT_CARD = "Credit Card"
    CHEQUE = "Cheque"
    OTHER = "Other"


class TransactionType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"
    TAX = "tax"
    DISCOUNT = "discount"
    ADJUSTMENT = "adjustment"


class TaxType(str, Enum):
    CGST = "CGST"
    SGST = "SGST"
    IGST = "IGST"
    OTHER = "Other"


class Quotation(SQLModel, table=True):
    """Quotation header with its derived financial fields."""

    __tablename__ = "quotations"

    id: Optional[int] = Field(default=None, primary_key=True)
    # {FY}-ME-{seq:03d}, assigned once on first persist
    quotation_number: str = Field(index=True, unique=True)

    quotation_name: str
    client_name: str = Field(index=True)
    subject: str
    client_id: Optional[int] = Field(default=None, foreign_key="clients.id", index=True)
    date: datetime = Field(default_factory=utcnow, index=True)
    terms_and_conditions: Optional[str] = None

    status: str = Field(default=QuotationStatus.DRAFT.value, index=True)

    # Inputs
    cgst: float = Field(default=0.0)
    sgst: float = Field(default=0.0)
    other_tax: float = Field(default=0.0)
    discount: float = Field(default=0.0)

    # Derived from items and inputs on every save
    subtotal: float = Field(default=0.0)
    tax: float = Field(default=0.0)
    total: float = Field(default=0.0)

    # Fold of the transaction ledger
    running_balance: float = Field(default=0.0)

    is_deleted: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class QuotationItem(SQLModel, table=True):
    """A line item; ``total_price`` is always quantity × unit_price."""

    __tablename__ = "quotation_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    quotation_id: int = Field(foreign_key="quotations.id", index=True)
    position: int = Field(default=0)

    product_id: Optional[int] = Field(default=None, foreign_key="products.id")
    product_name: str
    description: Optional[str] = None
    quantity: float
    unit_price: float
    total_price: float = Field(default=0.0)
    category: Optional[str] = Field(default=None, index=True)
    code: Optional[str] = None
    unit: Optional[str] = None


class QuotationPayment(SQLModel, table=True):
    __tablename__ = "quotation_payments"

    id: Optional[int] = Field(default=None, primary_key=True)
    quotation_id: int = Field(foreign_key="quotations.id", index=True)
    position: int = Field(default=0)

    amount_received: float
    payment_date: datetime = Field(default_factory=utcnow)
    payment_method: str = Field(default=PaymentMethod.BANK_TRANSFER.value)
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class QuotationTransaction(SQLModel, table=True):
    """
    One entry of a quotation's append-only ledger.

    Rows are inserted by ``services.ledger`` and never updated or deleted.
    """

    __tablename__ = "quotation_transactions"

    id: Optional[int] = Field(default=None, primary_key=True)
    quotation_id: int = Field(foreign_key="quotations.id", index=True)
    seq: int = Field(default=0)  # order within the ledger

    type: str  # credit adds, every other type subtracts
    amount: float
    tax_type: Optional[str] = None
    tax_percentage: Optional[float] = None
    discount_reason: Optional[str] = None
    balance_after: float = Field(default=0.0)
    date: datetime = Field(default_factory=utcnow)
    note: Optional[str] = None
    payment_mode: Optional[str] = None
    transaction_id: Optional[str] = None
    attachment: Optional[str] = None


class QuotationCounter(SQLModel, table=True):
    """Last issued quotation sequence per financial year."""

    __tablename__ = "quotation_counters"

    financial_year: int = Field(primary_key=True)
    last_sequence: int = Field(default=0)
