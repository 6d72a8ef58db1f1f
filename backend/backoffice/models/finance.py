"""SQLModel models for clients and their standalone credit/debit ledger."""
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field

from backoffice.core.timeutil import utcnow


class Client(SQLModel, table=True):
    __tablename__ = "clients"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    email: Optional[str] = None
    phone: Optional[str] = None
    gstin: Optional[str] = Field(default=None, index=True)
    address: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ClientTransaction(SQLModel, table=True):
    """
    Client-level credit/debit row used for profit/loss reporting.

    Independent of a quotation's embedded ledger; the two are never
    reconciled against each other.
    """

    __tablename__ = "client_transactions"

    id: Optional[int] = Field(default=None, primary_key=True)
    quotation_id: Optional[int] = Field(default=None, foreign_key="quotations.id", index=True)
    quotation_number: Optional[str] = Field(default=None, index=True)
    client_id: int = Field(foreign_key="clients.id", index=True)
    type: str  # "credit" or "debit"
    amount: float
    date: datetime = Field(default_factory=utcnow, index=True)
    payment_mode: Optional[str] = None
    transaction_id: Optional[str] = None
    note: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
