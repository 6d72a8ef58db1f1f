"""
Quotation numbers: ``{FY}-{TAG}-{seq:03d}`` (e.g. ``2024-ME-007``).

The sequence lives in a per-financial-year counter row that is incremented
with a single ``UPDATE … SET last_sequence = last_sequence + 1`` inside the
caller's transaction. Numbers are never reused, even after soft delete.
"""
from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy import update
from sqlmodel import Session, col, select

from backoffice.core.config import settings
from backoffice.core.timeutil import business_financial_year
from backoffice.models.quotation import Quotation, QuotationCounter


def format_quotation_number(fy: int, sequence: int, tag: Optional[str] = None) -> str:
    return f"{fy}-{tag or settings.QUOTATION_NUMBER_TAG}-{sequence:03d}"


def parse_sequence(number: str) -> Optional[int]:
    """Trailing sequence of a quotation number, or None if it has none."""
    match = re.search(r"-(\d+)$", number or "")
    return int(match.group(1)) if match else None


def _highest_existing(session: Session, fy: int) -> int:
    """Largest sequence already issued for ``fy`` (counter bootstrap)."""
    prefix = f"{fy}-{settings.QUOTATION_NUMBER_TAG}-"
    numbers = session.exec(
        select(Quotation.quotation_number).where(col(Quotation.quotation_number).startswith(prefix))
    ).all()
    return max((parse_sequence(n) or 0 for n in numbers), default=0)


def next_quotation_number(session: Session, at: Optional[datetime] = None) -> str:
    """
    Reserve the next number for the financial year containing ``at``.
    Must run inside the transaction that persists the quotation.
    """
    fy = business_financial_year(at)
    result = session.exec(
        update(QuotationCounter)
        .where(QuotationCounter.financial_year == fy)
        .values(last_sequence=QuotationCounter.last_sequence + 1)
    )
    if result.rowcount:
        sequence = session.exec(
            select(QuotationCounter.last_sequence).where(QuotationCounter.financial_year == fy)
        ).one()
    else:
        sequence = _highest_existing(session, fy) + 1
        session.add(QuotationCounter(financial_year=fy, last_sequence=sequence))
        session.flush()
        logger.info(f"numbering: opened counter for FY{fy} at {sequence}")
    return format_quotation_number(fy, sequence)
