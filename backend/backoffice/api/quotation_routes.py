"""
Quotation API routes.

Endpoints:
  GET    /api/quotations                       – paginated list
  GET    /api/quotations/categories            – distinct line-item categories
  GET    /api/quotations/category/{category}   – quotations with an item in a category
  GET    /api/quotations/{id}                  – full quotation with ledger
  POST   /api/quotations                       – create with items in one call
  POST   /api/quotations/initial               – create a header-only Draft
  POST   /api/quotations/{id}/products         – replace the Draft's items
  POST   /api/quotations/{id}/financial        – set taxes and discount
  POST   /api/quotations/{id}/finalize         – Draft → Sent
  PUT    /api/quotations/{id}                  – update a Draft or Sent quotation
  PATCH  /api/quotations/{id}/approve          – Sent → Approved
  PATCH  /api/quotations/{id}/reject           – Sent → Rejected
  POST   /api/quotations/{id}/payment          – record a payment
  POST   /api/quotations/{id}/transaction      – append a raw ledger entry
  GET    /api/quotations/{id}/transactions     – the ledger in order
  DELETE /api/quotations/{id}                  – soft delete
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from backoffice.core.database import get_session
from backoffice.models.quotation import QuotationStatus
from backoffice.schemas.requests import (
    FinancialDetailsIn,
    PaymentIn,
    QuotationCreate,
    QuotationHeaderIn,
    QuotationProductsIn,
    QuotationUpdate,
    TransactionIn,
)
from backoffice.schemas.responses import (
    PaymentRead,
    QuotationDetail,
    QuotationItemRead,
    QuotationListResponse,
    QuotationRead,
    TransactionListResponse,
    TransactionRead,
)
from backoffice.services import ledger, quotation_lifecycle as lifecycle

quotation_router = APIRouter(prefix="/api/quotations", tags=["quotations"])


def _detail(session: Session, quotation_id: int) -> QuotationDetail:
    view = lifecycle.get_view(session, quotation_id)
    return QuotationDetail(
        **QuotationRead.model_validate(view.quotation).model_dump(),
        items=[QuotationItemRead.model_validate(i) for i in view.items],
        payments=[PaymentRead.model_validate(p) for p in view.payments],
        transactions=[TransactionRead.model_validate(t) for t in view.transactions],
        paid=view.paid,
        due=view.due,
    )


# ── Reads ─────────────────────────────────────────────────────────────────────


@quotation_router.get("/", response_model=QuotationListResponse)
def list_quotations(
    status_filter: Optional[QuotationStatus] = Query(default=None, alias="status"),
    client_name: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None, description="Search number, name, client or subject"),
    category: Optional[str] = Query(default=None, description="Line-item category"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=500),
    session: Session = Depends(get_session),
):
    total, items = lifecycle.list_quotations(
        session,
        status=status_filter.value if status_filter else None,
        client_name=client_name,
        search=search,
        category=category,
        page=page,
        page_size=page_size,
    )
    return QuotationListResponse(
        total=total,
        page=page,
        page_size=page_size,
        items=[QuotationRead.model_validate(q) for q in items],
    )


@quotation_router.get("/categories", response_model=list[str])
def list_item_categories(session: Session = Depends(get_session)):
    return lifecycle.list_item_categories(session)


@quotation_router.get("/category/{category}", response_model=list[QuotationRead])
def list_by_item_category(category: str, session: Session = Depends(get_session)):
    return [QuotationRead.model_validate(q) for q in lifecycle.list_by_item_category(session, category)]


@quotation_router.get("/{quotation_id}", response_model=QuotationDetail)
def get_quotation(quotation_id: int, session: Session = Depends(get_session)):
    return _detail(session, quotation_id)


@quotation_router.get("/{quotation_id}/transactions", response_model=TransactionListResponse)
def list_transactions(quotation_id: int, session: Session = Depends(get_session)):
    quotation = lifecycle.get_quotation(session, quotation_id)
    transactions = ledger.get_transactions(session, quotation.id)
    ledger.verify_running_balance(quotation, transactions)
    return TransactionListResponse(
        quotation_id=quotation.id,
        running_balance=quotation.running_balance,
        transactions=[TransactionRead.model_validate(t) for t in transactions],
    )


# ── Creation ──────────────────────────────────────────────────────────────────


@quotation_router.post("/", response_model=QuotationDetail, status_code=status.HTTP_201_CREATED)
def create_quotation(body: QuotationCreate, session: Session = Depends(get_session)):
    financials = FinancialDetailsIn(
        cgst=body.cgst, sgst=body.sgst, other_tax=body.other_tax, discount=body.discount
    )
    quotation = lifecycle.create_quotation(session, body, body.items, financials)
    return _detail(session, quotation.id)


@quotation_router.post(
    "/initial", response_model=QuotationDetail, status_code=status.HTTP_201_CREATED
)
def create_initial(body: QuotationHeaderIn, session: Session = Depends(get_session)):
    quotation = lifecycle.create_quotation(session, body)
    return _detail(session, quotation.id)


@quotation_router.post("/{quotation_id}/products", response_model=QuotationDetail)
def add_products(
    quotation_id: int, body: QuotationProductsIn, session: Session = Depends(get_session)
):
    lifecycle.add_products(session, quotation_id, body.items)
    return _detail(session, quotation_id)


@quotation_router.post("/{quotation_id}/financial", response_model=QuotationDetail)
def add_financial_details(
    quotation_id: int, body: FinancialDetailsIn, session: Session = Depends(get_session)
):
    lifecycle.add_financial_details(session, quotation_id, body)
    return _detail(session, quotation_id)


# ── Lifecycle ─────────────────────────────────────────────────────────────────


@quotation_router.post("/{quotation_id}/finalize", response_model=QuotationDetail)
def finalize(quotation_id: int, session: Session = Depends(get_session)):
    lifecycle.finalize(session, quotation_id)
    return _detail(session, quotation_id)


@quotation_router.put("/{quotation_id}", response_model=QuotationDetail)
def update_quotation(
    quotation_id: int, body: QuotationUpdate, session: Session = Depends(get_session)
):
    lifecycle.update(session, quotation_id, body)
    return _detail(session, quotation_id)


@quotation_router.patch("/{quotation_id}/approve", response_model=QuotationRead)
def approve(quotation_id: int, session: Session = Depends(get_session)):
    return lifecycle.approve(session, quotation_id)


@quotation_router.patch("/{quotation_id}/reject", response_model=QuotationRead)
def reject(quotation_id: int, session: Session = Depends(get_session)):
    return lifecycle.reject(session, quotation_id)


@quotation_router.delete("/{quotation_id}")
def delete_quotation(quotation_id: int, session: Session = Depends(get_session)) -> dict:
    lifecycle.delete(session, quotation_id)
    return {"deleted": quotation_id}


# ── Ledger ────────────────────────────────────────────────────────────────────


@quotation_router.post("/{quotation_id}/payment", response_model=QuotationDetail)
def add_payment(quotation_id: int, body: PaymentIn, session: Session = Depends(get_session)):
    ledger.apply_payment(session, quotation_id, body)
    return _detail(session, quotation_id)


@quotation_router.post(
    "/{quotation_id}/transaction",
    response_model=TransactionRead,
    status_code=status.HTTP_201_CREATED,
)
def add_transaction(
    quotation_id: int, body: TransactionIn, session: Session = Depends(get_session)
):
    return ledger.append_transaction(session, quotation_id, body)
