"""
Quotation lifecycle.

    Draft ──finalize──▶ Sent ──approve──▶ Approved
                          └───reject───▶ Rejected

  - Draft: items and financial details may be replaced; deletable.
  - Sent: updatable (a changed total is booked to the ledger); takes payments.
  - Approved: takes payments; otherwise frozen.
  - Rejected: frozen; deletable.

Every mutation reloads the quotation under its document lock and runs in a
single transaction. Totals are recomputed from the items on each save.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from loguru import logger
from sqlmodel import Session, col, func, select

from backoffice.core.database import unit_of_work
from backoffice.core.errors import InvalidStatus, NotFound, OverPayment, ValidationError
from backoffice.core.locks import document_lock
from backoffice.core.timeutil import as_naive_utc, business_financial_year, utcnow
from backoffice.models.finance import Client
from backoffice.models.quotation import (
    Quotation,
    QuotationItem,
    QuotationPayment,
    QuotationStatus,
    QuotationTransaction,
    TransactionType,
)
from backoffice.schemas.requests import (
    FinancialDetailsIn,
    QuotationHeaderIn,
    QuotationItemIn,
    QuotationUpdate,
)
from backoffice.services import catalog
from backoffice.services.ledger import (
    amount_paid,
    amounts_equal,
    get_items,
    get_payments,
    get_transactions,
    load_quotation,
    money,
    recompute_totals,
    record_entry,
    verify_running_balance,
)
from backoffice.services.numbering import next_quotation_number

UPDATABLE_STATUSES = (QuotationStatus.DRAFT, QuotationStatus.SENT)
DELETABLE_STATUSES = (QuotationStatus.DRAFT, QuotationStatus.REJECTED)
FINALIZE_NOTE = "Quotation finalized"

_REQUIRED_HEADER_FIELDS = ("quotation_name", "client_name", "subject")
_HEADER_FIELDS = (*_REQUIRED_HEADER_FIELDS, "terms_and_conditions")
_FINANCIAL_FIELDS = ("cgst", "sgst", "other_tax", "discount")


@dataclass
class QuotationView:
    """A quotation with its child rows and settlement figures."""

    quotation: Quotation
    items: list[QuotationItem]
    payments: list[QuotationPayment]
    transactions: list[QuotationTransaction]
    paid: float
    due: float


# ── Helpers ───────────────────────────────────────────────────────────────────


def _require_status(quotation: Quotation, allowed: Sequence[QuotationStatus], action: str) -> None:
    if quotation.status not in allowed:
        raise InvalidStatus(
            f"Cannot {action} a {quotation.status} quotation",
            context={"status": quotation.status, "allowed": [s.value for s in allowed]},
        )


def _ensure_client(session: Session, client_id: Optional[int]) -> None:
    if client_id is not None and session.get(Client, client_id) is None:
        raise ValidationError("Client not found", context={"client_id": client_id})


def _resolve_items(session: Session, items_in: Sequence[QuotationItemIn]) -> list[QuotationItem]:
    """Build line items, filling gaps from the catalog for ``product_id`` entries."""
    items: list[QuotationItem] = []
    for position, item in enumerate(items_in):
        name, unit_price = item.product_name, item.unit_price
        description, code, unit, category = item.description, item.code, item.unit, item.category
        if item.product_id is not None:
            product = catalog.get_product(session, item.product_id)
            name = name or product.product_name
            unit_price = product.price if unit_price is None else unit_price
            description = description or product.description
            code = code or product.code
            unit = unit or product.unit
            category = category or catalog.category_name_for(session, product)

        if not name:
            raise ValidationError("Product name is required for all items", context={"position": position})
        if unit_price is None or unit_price < 0:
            raise ValidationError("Valid unit price is required for all items", context={"position": position})
        if item.quantity is None or item.quantity <= 0:
            raise ValidationError("Valid quantity is required for all items", context={"position": position})

        items.append(
            QuotationItem(
                position=position,
                product_id=item.product_id,
                product_name=name,
                description=description,
                quantity=item.quantity,
                unit_price=money(unit_price),
                category=category,
                code=code,
                unit=unit,
            )
        )
    return items


def _replace_items(
    session: Session, quotation: Quotation, items_in: Sequence[QuotationItemIn]
) -> list[QuotationItem]:
    new_items = _resolve_items(session, items_in)
    for old in get_items(session, quotation.id):
        session.delete(old)
    session.flush()
    for item in new_items:
        item.quotation_id = quotation.id
        session.add(item)
    return new_items


def _apply_totals(session: Session, quotation: Quotation, items: list[QuotationItem]) -> None:
    totals = recompute_totals(
        items, quotation.cgst, quotation.sgst, quotation.other_tax, quotation.discount
    )
    for item, total_price in zip(items, totals.line_totals):
        item.total_price = total_price
        session.add(item)
    quotation.subtotal = totals.subtotal
    quotation.tax = totals.tax
    quotation.total = totals.total
    quotation.updated_at = utcnow()
    session.add(quotation)


# ── Reads ─────────────────────────────────────────────────────────────────────


def get_quotation(session: Session, quotation_id: int) -> Quotation:
    quotation = session.get(Quotation, quotation_id)
    if quotation is None or quotation.is_deleted:
        raise NotFound("Quotation not found", context={"quotation_id": quotation_id})
    return quotation


def get_view(session: Session, quotation_id: int) -> QuotationView:
    """Full quotation; raises InvariantViolation if the ledger and balance disagree."""
    quotation = get_quotation(session, quotation_id)
    transactions = get_transactions(session, quotation.id)
    verify_running_balance(quotation, transactions)
    payments = get_payments(session, quotation.id)
    paid = amount_paid(payments)
    return QuotationView(
        quotation=quotation,
        items=get_items(session, quotation.id),
        payments=payments,
        transactions=transactions,
        paid=paid,
        due=money(quotation.total - paid),
    )


def _not_deleted():
    return Quotation.is_deleted == False  # noqa: E712


def list_quotations(
    session: Session,
    *,
    status: Optional[str] = None,
    client_name: Optional[str] = None,
    search: Optional[str] = None,
    category: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
) -> tuple[int, list[Quotation]]:
    stmt = select(Quotation).where(_not_deleted())
    if status:
        stmt = stmt.where(Quotation.status == status)
    if client_name:
        stmt = stmt.where(col(Quotation.client_name).contains(client_name))
    if search:
        stmt = stmt.where(
            (col(Quotation.quotation_number).contains(search))
            | (col(Quotation.quotation_name).contains(search))
            | (col(Quotation.client_name).contains(search))
            | (col(Quotation.subject).contains(search))
        )
    if category:
        stmt = stmt.where(
            col(Quotation.id).in_(
                select(QuotationItem.quotation_id).where(QuotationItem.category == category)
            )
        )

    total = session.exec(select(func.count()).select_from(stmt.subquery())).one()
    stmt = stmt.order_by(col(Quotation.date).desc(), col(Quotation.id).desc())
    stmt = stmt.offset((page - 1) * page_size).limit(page_size)
    return total, list(session.exec(stmt).all())


def list_item_categories(session: Session) -> list[str]:
    """Distinct line-item categories across live quotations."""
    rows = session.exec(
        select(QuotationItem.category)
        .distinct()
        .join(Quotation, QuotationItem.quotation_id == Quotation.id)
        .where(_not_deleted(), QuotationItem.category.isnot(None))
    ).all()
    return sorted(r for r in rows if r)


def list_by_item_category(session: Session, category: str) -> list[Quotation]:
    return list_quotations(session, category=category, page_size=10_000)[1]


# ── Transitions ───────────────────────────────────────────────────────────────


def create_quotation(
    session: Session,
    header: QuotationHeaderIn,
    items: Optional[Sequence[QuotationItemIn]] = None,
    financials: Optional[FinancialDetailsIn] = None,
) -> Quotation:
    """Create a Draft. The quotation number is reserved here and never changes."""
    now = utcnow()
    with document_lock("quotation-number", business_financial_year(now)), unit_of_work(session):
        _ensure_client(session, header.client_id)
        quotation = Quotation(
            quotation_number=next_quotation_number(session, now),
            quotation_name=header.quotation_name,
            client_name=header.client_name,
            subject=header.subject,
            client_id=header.client_id,
            date=as_naive_utc(header.date) or now,
            terms_and_conditions=header.terms_and_conditions,
            status=QuotationStatus.DRAFT.value,
        )
        if financials is not None:
            for name in _FINANCIAL_FIELDS:
                setattr(quotation, name, money(getattr(financials, name)))
        session.add(quotation)
        session.flush()

        line_items = _replace_items(session, quotation, items) if items else []
        _apply_totals(session, quotation, line_items)

    session.refresh(quotation)
    logger.info(f"quotation: created {quotation.quotation_number} (id={quotation.id})")
    return quotation


def add_products(
    session: Session, quotation_id: int, items_in: Sequence[QuotationItemIn]
) -> Quotation:
    """Replace the Draft's items wholesale."""
    if not items_in:
        raise ValidationError("At least one product is required")
    with document_lock("quotation", quotation_id), unit_of_work(session):
        quotation = load_quotation(session, quotation_id)
        _require_status(quotation, (QuotationStatus.DRAFT,), "add products to")
        items = _replace_items(session, quotation, items_in)
        _apply_totals(session, quotation, items)

    session.refresh(quotation)
    return quotation


def add_financial_details(
    session: Session, quotation_id: int, financials: FinancialDetailsIn
) -> Quotation:
    with document_lock("quotation", quotation_id), unit_of_work(session):
        quotation = load_quotation(session, quotation_id)
        _require_status(quotation, (QuotationStatus.DRAFT,), "add financial details to")
        for name in _FINANCIAL_FIELDS:
            setattr(quotation, name, money(getattr(financials, name)))
        _apply_totals(session, quotation, get_items(session, quotation.id))

    session.refresh(quotation)
    return quotation


def finalize(session: Session, quotation_id: int) -> Quotation:
    """Draft → Sent, seeding the ledger with one credit for the total."""
    with document_lock("quotation", quotation_id), unit_of_work(session):
        quotation = load_quotation(session, quotation_id)
        _require_status(quotation, (QuotationStatus.DRAFT,), "finalize")
        items = get_items(session, quotation.id)
        if not items:
            raise ValidationError("Quotation must have at least one product")
        _apply_totals(session, quotation, items)
        if quotation.total <= 0:
            raise ValidationError(
                "Quotation total must be greater than zero", context={"total": quotation.total}
            )

        quotation.status = QuotationStatus.SENT.value
        record_entry(session, quotation, TransactionType.CREDIT, quotation.total, note=FINALIZE_NOTE)

    session.refresh(quotation)
    logger.info(f"quotation: finalized {quotation.quotation_number}, total {quotation.total:.2f}")
    return quotation


def _transition(
    session: Session, quotation_id: int, source: QuotationStatus, target: QuotationStatus, action: str
) -> Quotation:
    with document_lock("quotation", quotation_id), unit_of_work(session):
        quotation = load_quotation(session, quotation_id)
        _require_status(quotation, (source,), action)
        quotation.status = target.value
        quotation.updated_at = utcnow()
        session.add(quotation)

    session.refresh(quotation)
    logger.info(f"quotation: {quotation.quotation_number} {source.value} → {target.value}")
    return quotation


def approve(session: Session, quotation_id: int) -> Quotation:
    return _transition(session, quotation_id, QuotationStatus.SENT, QuotationStatus.APPROVED, "approve")


def reject(session: Session, quotation_id: int) -> Quotation:
    return _transition(session, quotation_id, QuotationStatus.SENT, QuotationStatus.REJECTED, "reject")


def update(session: Session, quotation_id: int, patch: QuotationUpdate) -> Quotation:
    """
    Merge ``patch`` into a Draft or Sent quotation and recompute totals.

    On a Sent quotation a changed total is booked as a corrective ledger
    entry (credit for an increase, adjustment for a decrease) so the balance
    keeps tracking the quotation. The total may not drop below what has
    already been received.
    """
    changes = patch.model_dump(exclude_unset=True, exclude={"items"})
    with document_lock("quotation", quotation_id), unit_of_work(session):
        quotation = load_quotation(session, quotation_id)
        _require_status(quotation, UPDATABLE_STATUSES, "update")

        if "client_id" in changes:
            _ensure_client(session, changes["client_id"])
            quotation.client_id = changes["client_id"]
        if changes.get("date") is not None:
            quotation.date = as_naive_utc(changes["date"])
        for name in _HEADER_FIELDS:
            if changes.get(name) is not None:
                if name in _REQUIRED_HEADER_FIELDS and not changes[name].strip():
                    raise ValidationError(f"{name} cannot be empty", context={"field": name})
                setattr(quotation, name, changes[name].strip())
        for name in _FINANCIAL_FIELDS:
            if changes.get(name) is not None:
                setattr(quotation, name, money(changes[name]))

        previous_total = quotation.total
        if patch.items is not None:
            items = _replace_items(session, quotation, patch.items)
        else:
            items = get_items(session, quotation.id)
        _apply_totals(session, quotation, items)

        if quotation.status == QuotationStatus.SENT and not amounts_equal(previous_total, quotation.total):
            if quotation.total <= 0:
                raise ValidationError("Quotation total must be greater than zero")
            paid = amount_paid(get_payments(session, quotation.id))
            if quotation.total < paid:
                raise OverPayment(
                    "Revised total is less than the amount already received",
                    context={"total": quotation.total, "paid": paid},
                )
            delta = money(quotation.total - previous_total)
            record_entry(
                session,
                quotation,
                TransactionType.CREDIT if delta > 0 else TransactionType.ADJUSTMENT,
                abs(delta),
                note=f"Total revised from {previous_total:.2f} to {quotation.total:.2f}",
            )

    session.refresh(quotation)
    logger.info(f"quotation: updated {quotation.quotation_number}")
    return quotation


def delete(session: Session, quotation_id: int) -> None:
    """Soft delete; only Draft and Rejected quotations qualify."""
    with document_lock("quotation", quotation_id), unit_of_work(session):
        quotation = load_quotation(session, quotation_id)
        _require_status(quotation, DELETABLE_STATUSES, "delete")
        quotation.is_deleted = True
        quotation.updated_at = utcnow()
        session.add(quotation)

    logger.info(f"quotation: soft-deleted id={quotation_id}")
