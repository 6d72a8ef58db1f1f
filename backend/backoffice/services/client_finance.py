"""
Client-level bookkeeping.

Client transactions are a separate credit/debit ledger used for profit and
loss reporting. They are never reconciled against a quotation's own
transaction log: the finance summary reports both views side by side.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from loguru import logger
from sqlmodel import Session, col, select

from backoffice.core.database import unit_of_work
from backoffice.core.errors import NotFound, ValidationError
from backoffice.core.timeutil import as_naive_utc, utcnow
from backoffice.models.finance import Client, ClientTransaction
from backoffice.models.quotation import Quotation
from backoffice.schemas.requests import ClientIn, ClientTransactionIn
from backoffice.services.ledger import get_payments, amount_paid, money
from backoffice.services.quotation_lifecycle import get_quotation


@dataclass
class FinanceSummary:
    quotation: Quotation
    client: Optional[Client]
    transactions: list[ClientTransaction]
    total_credited: float
    total_debited: float
    profit: float
    paid: float
    due: float


# ── Clients ───────────────────────────────────────────────────────────────────


def create_client(session: Session, data: ClientIn) -> Client:
    with unit_of_work(session):
        client = Client(**data.model_dump())
        session.add(client)
    session.refresh(client)
    logger.info(f"finance: created client '{client.name}' (id={client.id})")
    return client


def get_client(session: Session, client_id: int) -> Client:
    client = session.get(Client, client_id)
    if client is None:
        raise NotFound("Client not found", context={"client_id": client_id})
    return client


def list_clients(session: Session, search: Optional[str] = None) -> list[Client]:
    stmt = select(Client)
    if search:
        stmt = stmt.where(col(Client.name).contains(search))
    return list(session.exec(stmt.order_by(Client.name)).all())


# ── Transactions ──────────────────────────────────────────────────────────────


def add_transaction(session: Session, data: ClientTransactionIn) -> ClientTransaction:
    """
    Record a client credit/debit. A quotation referenced by number supplies
    the client and quotation id when it has them; an id and a number that
    name different quotations are rejected.
    """
    quotation_id, client_id = data.quotation_id, data.client_id
    quotation_number = data.quotation_number

    if quotation_number:
        quotation = session.exec(
            select(Quotation).where(
                Quotation.quotation_number == quotation_number,
                Quotation.is_deleted == False,  # noqa: E712
            )
        ).first()
        if quotation is None:
            raise NotFound("Quotation not found", context={"quotation_number": quotation_number})
        if quotation_id is not None and quotation_id != quotation.id:
            raise ValidationError(
                "Quotation id and number refer to different quotations",
                context={"quotation_id": quotation_id, "quotation_number": quotation_number},
            )
        quotation_id = quotation.id
        if quotation.client_id is not None:
            client_id = quotation.client_id
    elif quotation_id is not None:
        quotation_number = get_quotation(session, quotation_id).quotation_number

    if client_id is None:
        raise ValidationError("Client ID is required")
    get_client(session, client_id)

    with unit_of_work(session):
        row = ClientTransaction(
            quotation_id=quotation_id,
            quotation_number=quotation_number,
            client_id=client_id,
            type=data.type,
            amount=money(data.amount),
            date=as_naive_utc(data.date) or utcnow(),
            payment_mode=data.payment_mode,
            transaction_id=data.transaction_id,
            note=data.note,
        )
        session.add(row)

    session.refresh(row)
    logger.info(
        f"finance: {row.type} {row.amount:.2f} for client {client_id}"
        + (f" on {quotation_number}" if quotation_number else "")
    )
    return row


def transactions_for_quotation(session: Session, quotation_id: int) -> list[ClientTransaction]:
    """Newest first."""
    return list(
        session.exec(
            select(ClientTransaction)
            .where(ClientTransaction.quotation_id == quotation_id)
            .order_by(col(ClientTransaction.date).desc(), col(ClientTransaction.id).desc())
        ).all()
    )


def finance_summary(session: Session, quotation_id: int) -> FinanceSummary:
    """
    Profit view (client credits − client debits) next to the settlement
    view (payments received against the quotation total).
    """
    quotation = get_quotation(session, quotation_id)
    transactions = transactions_for_quotation(session, quotation.id)
    credited = money(sum(t.amount for t in transactions if t.type == "credit"))
    debited = money(sum(t.amount for t in transactions if t.type == "debit"))
    paid = amount_paid(get_payments(session, quotation.id))

    return FinanceSummary(
        quotation=quotation,
        client=session.get(Client, quotation.client_id) if quotation.client_id else None,
        transactions=transactions,
        total_credited=credited,
        total_debited=debited,
        profit=money(credited - debited),
        paid=paid,
        due=money(quotation.total - paid),
    )


def quotation_numbers(session: Session) -> list[tuple[int, str]]:
    """(id, number) of every live quotation, number ascending."""
    rows = session.exec(
        select(Quotation.id, Quotation.quotation_number)
        .where(Quotation.is_deleted == False)  # noqa: E712
        .order_by(Quotation.quotation_number)
    ).all()
    return [(qid, number) for qid, number in rows]
