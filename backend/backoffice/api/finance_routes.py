"""
Client finance API routes.

Endpoints:
  GET  /api/client-finance/quotations/numbers           – live quotation numbers
  POST /api/client-finance/clients
  GET  /api/client-finance/clients
  GET  /api/client-finance/clients/{id}
  POST /api/client-finance/transaction                  – client credit/debit
  GET  /api/client-finance/transactions/{quotation_id}  – newest first
  GET  /api/client-finance/summary/{quotation_id}       – profit and settlement
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from backoffice.core.database import get_session
from backoffice.schemas.requests import ClientIn, ClientTransactionIn
from backoffice.schemas.responses import (
    ClientRead,
    ClientTransactionRead,
    FinanceSummary,
    QuotationNumberRead,
)
from backoffice.services import client_finance

finance_router = APIRouter(prefix="/api/client-finance", tags=["client-finance"])


@finance_router.get("/quotations/numbers", response_model=list[QuotationNumberRead])
def quotation_numbers(session: Session = Depends(get_session)):
    return [
        QuotationNumberRead(id=qid, quotation_number=number)
        for qid, number in client_finance.quotation_numbers(session)
    ]


# ── Clients ───────────────────────────────────────────────────────────────────


@finance_router.post("/clients", response_model=ClientRead, status_code=status.HTTP_201_CREATED)
def create_client(body: ClientIn, session: Session = Depends(get_session)):
    return client_finance.create_client(session, body)


@finance_router.get("/clients", response_model=list[ClientRead])
def list_clients(
    search: Optional[str] = Query(default=None, description="Search client name"),
    session: Session = Depends(get_session),
):
    return client_finance.list_clients(session, search)


@finance_router.get("/clients/{client_id}", response_model=ClientRead)
def get_client(client_id: int, session: Session = Depends(get_session)):
    return client_finance.get_client(session, client_id)


# ── Transactions ──────────────────────────────────────────────────────────────


@finance_router.post(
    "/transaction", response_model=ClientTransactionRead, status_code=status.HTTP_201_CREATED
)
def add_transaction(body: ClientTransactionIn, session: Session = Depends(get_session)):
    return client_finance.add_transaction(session, body)


@finance_router.get("/transactions/{quotation_id}", response_model=list[ClientTransactionRead])
def list_transactions(quotation_id: int, session: Session = Depends(get_session)):
    return client_finance.transactions_for_quotation(session, quotation_id)


@finance_router.get("/summary/{quotation_id}", response_model=FinanceSummary)
def summary(quotation_id: int, session: Session = Depends(get_session)):
    result = client_finance.finance_summary(session, quotation_id)
    return FinanceSummary(
        quotation_id=result.quotation.id,
        quotation_number=result.quotation.quotation_number,
        client=ClientRead.model_validate(result.client) if result.client else None,
        quotation_total=result.quotation.total,
        total_credited=result.total_credited,
        total_debited=result.total_debited,
        profit=result.profit,
        paid=result.paid,
        due=result.due,
        transactions=[ClientTransactionRead.model_validate(t) for t in result.transactions],
    )
