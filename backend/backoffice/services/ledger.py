"""
Quotation ledger: totals, payments and the append-only transaction log.

Sign convention for the running balance: ``credit`` entries add, every other
entry type (debit, tax, discount, adjustment) subtracts.

``recompute_totals`` and ``compute_running_balance`` are pure. The write
operations persist through the session they are given and keep
``Quotation.running_balance`` equal to the fold of its transactions.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from loguru import logger
from sqlmodel import Session, select

from backoffice.core.database import unit_of_work
from backoffice.core.errors import (
    InvalidStatus,
    InvariantViolation,
    NotFound,
    OverPayment,
    ValidationError,
)
from backoffice.core.locks import document_lock
from backoffice.core.timeutil import as_naive_utc, utcnow
from backoffice.models.quotation import (
    Quotation,
    QuotationItem,
    QuotationPayment,
    QuotationStatus,
    QuotationTransaction,
    TransactionType,
)
from backoffice.schemas.requests import PaymentIn, TransactionIn

PAYABLE_STATUSES = (QuotationStatus.SENT, QuotationStatus.APPROVED)
DEFAULT_PAYMENT_NOTE = "Payment received"

# Stored amounts are rounded to paise; anything closer than this is equal
_TOLERANCE = 0.005


@dataclass(frozen=True)
class Totals:
    line_totals: list[float]
    subtotal: float
    tax: float
    total: float


def money(value: Any) -> float:
    return round(float(value or 0), 2)


def line_total(quantity: float, unit_price: float) -> float:
    return money(float(quantity) * float(unit_price))


def recompute_totals(
    items: Iterable[Any],
    cgst: float = 0,
    sgst: float = 0,
    other_tax: float = 0,
    discount: float = 0,
) -> Totals:
    """
    subtotal = Σ quantity × unit_price, tax = cgst + sgst + other_tax,
    total = subtotal + tax − discount. Item ``total_price`` values supplied
    by callers are ignored.
    """
    for label, value in (("CGST", cgst), ("SGST", sgst), ("Other tax", other_tax), ("Discount", discount)):
        if (value or 0) < 0:
            raise ValidationError(f"{label} cannot be negative")

    line_totals = [line_total(item.quantity, item.unit_price) for item in items]
    subtotal = money(sum(line_totals))
    tax = money((cgst or 0) + (sgst or 0) + (other_tax or 0))
    total = money(subtotal + tax - (discount or 0))
    return Totals(line_totals=line_totals, subtotal=subtotal, tax=tax, total=total)


def signed_amount(entry_type: str, amount: float) -> float:
    return float(amount) if entry_type == TransactionType.CREDIT else -float(amount)


def compute_running_balance(transactions: Iterable[Any]) -> float:
    """Fold a ledger in order. Side-effect free; callers persist the result."""
    balance = 0.0
    for entry in transactions:
        balance += signed_amount(entry.type, entry.amount)
    return money(balance)


def amounts_equal(a: float, b: float) -> bool:
    return abs(money(a) - money(b)) < _TOLERANCE


# ── Queries ───────────────────────────────────────────────────────────────────


def get_items(session: Session, quotation_id: int) -> list[QuotationItem]:
    return list(
        session.exec(
            select(QuotationItem)
            .where(QuotationItem.quotation_id == quotation_id)
            .order_by(QuotationItem.position)
        ).all()
    )


def get_payments(session: Session, quotation_id: int) -> list[QuotationPayment]:
    return list(
        session.exec(
            select(QuotationPayment)
            .where(QuotationPayment.quotation_id == quotation_id)
            .order_by(QuotationPayment.position)
        ).all()
    )


def get_transactions(session: Session, quotation_id: int) -> list[QuotationTransaction]:
    return list(
        session.exec(
            select(QuotationTransaction)
            .where(QuotationTransaction.quotation_id == quotation_id)
            .order_by(QuotationTransaction.seq)
        ).all()
    )


def amount_paid(payments: Iterable[QuotationPayment]) -> float:
    return money(sum(p.amount_received for p in payments))


def verify_running_balance(
    quotation: Quotation, transactions: Sequence[QuotationTransaction]
) -> float:
    """Raise if the stored balance disagrees with the ledger. Never repairs it."""
    expected = compute_running_balance(transactions)
    if not amounts_equal(expected, quotation.running_balance):
        logger.error(
            f"ledger: quotation {quotation.quotation_number} balance {quotation.running_balance} "
            f"!= ledger fold {expected}"
        )
        raise InvariantViolation(
            "Running balance does not match the transaction ledger",
            context={
                "quotation_id": quotation.id,
                "stored": quotation.running_balance,
                "expected": expected,
            },
        )
    return expected


def load_quotation(session: Session, quotation_id: int) -> Quotation:
    quotation = session.get(
        Quotation, quotation_id, populate_existing=True, with_for_update=True
    )
    if quotation is None or quotation.is_deleted:
        raise NotFound("Quotation not found", context={"quotation_id": quotation_id})
    return quotation


# ── Writes ────────────────────────────────────────────────────────────────────


def record_entry(
    session: Session,
    quotation: Quotation,
    entry_type: TransactionType,
    amount: float,
    **fields: Any,
) -> QuotationTransaction:
    """
    Append one ledger entry and refresh ``running_balance``.

    Joins the caller's transaction; the caller holds the quotation lock and
    commits.
    """
    if amount is None or float(amount) <= 0:
        raise ValidationError("Amount must be greater than zero")

    entries = get_transactions(session, quotation.id)
    previous = compute_running_balance(entries)
    entry = QuotationTransaction(
        quotation_id=quotation.id,
        seq=(entries[-1].seq + 1) if entries else 0,
        type=TransactionType(entry_type).value,
        amount=money(amount),
        **fields,
    )
    entry.balance_after = money(previous + signed_amount(entry.type, entry.amount))
    if entry.date is None:
        entry.date = utcnow()
    session.add(entry)

    quotation.running_balance = compute_running_balance([*entries, entry])
    quotation.updated_at = utcnow()
    session.add(quotation)
    return entry


def apply_payment(session: Session, quotation_id: int, payment: PaymentIn) -> Quotation:
    """
    Record a payment and its mirrored credit entry.

    Only Sent or Approved quotations take payments, and the payments may
    never add up to more than the quotation total. On failure nothing is
    written.
    """
    with document_lock("quotation", quotation_id), unit_of_work(session):
        quotation = load_quotation(session, quotation_id)
        if quotation.status not in PAYABLE_STATUSES:
            raise InvalidStatus(
                f"Cannot record a payment on a {quotation.status} quotation",
                context={"status": quotation.status, "allowed": [s.value for s in PAYABLE_STATUSES]},
            )

        now = utcnow()
        payment_date = as_naive_utc(payment.payment_date) or now
        if payment_date > now:
            raise ValidationError("Payment date cannot be in the future")

        payments = get_payments(session, quotation.id)
        paid = amount_paid(payments)
        if money(paid + payment.amount_received) > money(quotation.total) + _TOLERANCE:
            raise OverPayment(
                "Payment exceeds the outstanding amount",
                context={
                    "total": quotation.total,
                    "paid": paid,
                    "due": money(quotation.total - paid),
                    "amount_received": payment.amount_received,
                },
            )

        method = getattr(payment.payment_method, "value", payment.payment_method)
        session.add(
            QuotationPayment(
                quotation_id=quotation.id,
                position=len(payments),
                amount_received=money(payment.amount_received),
                payment_date=payment_date,
                payment_method=method,
                reference_number=payment.reference_number,
                notes=payment.notes,
            )
        )
        record_entry(
            session,
            quotation,
            TransactionType.CREDIT,
            payment.amount_received,
            date=payment_date,
            note=payment.notes or DEFAULT_PAYMENT_NOTE,
            payment_mode=method,
            transaction_id=payment.reference_number,
        )

    session.refresh(quotation)
    logger.info(
        f"ledger: payment {payment.amount_received:.2f} on {quotation.quotation_number}, "
        f"balance {quotation.running_balance:.2f}"
    )
    return quotation


def append_transaction(
    session: Session, quotation_id: int, entry_in: TransactionIn
) -> QuotationTransaction:
    """
    Append a raw ledger entry of any type. There is no status gate: the
    ledger is an audit trail independent of the quotation lifecycle.
    """
    with document_lock("quotation", quotation_id), unit_of_work(session):
        quotation = load_quotation(session, quotation_id)
        entry = record_entry(
            session,
            quotation,
            entry_in.type,
            entry_in.amount,
            date=as_naive_utc(entry_in.date),
            note=entry_in.note,
            payment_mode=entry_in.payment_mode,
            transaction_id=entry_in.transaction_id,
            tax_type=getattr(entry_in.tax_type, "value", entry_in.tax_type),
            tax_percentage=entry_in.tax_percentage,
            discount_reason=entry_in.discount_reason,
            attachment=entry_in.attachment,
        )

    session.refresh(entry)
    logger.info(
        f"ledger: {entry.type} {entry.amount:.2f} on quotation {quotation_id}, "
        f"balance after {entry.balance_after:.2f}"
    )
    return entry


def outstanding(session: Session, quotation: Quotation) -> tuple[float, float]:
    """(paid, due) from recorded payments against the current total."""
    paid = amount_paid(get_payments(session, quotation.id))
    return paid, money(quotation.total - paid)
