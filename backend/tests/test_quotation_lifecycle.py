"""Service tests for the quotation lifecycle and its ledger."""
from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError as PydanticValidationError

from backoffice.core.errors import (
    InvalidStatus,
    InvariantViolation,
    NotFound,
    OverPayment,
    ValidationError,
)
from backoffice.core.timeutil import utcnow
from backoffice.models.quotation import QuotationStatus
from backoffice.schemas.requests import (
    CategoryNodeIn,
    FinancialDetailsIn,
    PaymentIn,
    ProductIn,
    QuotationHeaderIn,
    QuotationItemIn,
    QuotationUpdate,
    TransactionIn,
)
from backoffice.services import catalog, category_tree, ledger
from backoffice.services import quotation_lifecycle as lifecycle

HEADER = QuotationHeaderIn(quotation_name="Office fit-out", client_name="Acme Ltd", subject="Desks")


def _items(quantity=2, unit_price=100, category="Furniture"):
    return [
        QuotationItemIn(
            product_name="Desk", quantity=quantity, unit_price=unit_price, category=category
        )
    ]


def _financials(cgst=9, sgst=9, other_tax=0, discount=10):
    return FinancialDetailsIn(cgst=cgst, sgst=sgst, other_tax=other_tax, discount=discount)


@pytest.fixture()
def draft(session):
    """Draft with subtotal 200, tax 18, discount 10: total 208."""
    return lifecycle.create_quotation(session, HEADER, _items(), _financials())


@pytest.fixture()
def sent(session, draft):
    return lifecycle.finalize(session, draft.id)


class TestCreate:
    def test_draft_with_totals(self, session, draft):
        assert draft.status == QuotationStatus.DRAFT
        assert draft.subtotal == 200
        assert draft.tax == 18
        assert draft.total == 208
        assert draft.running_balance == 0
        assert draft.quotation_number.endswith("-ME-001")

        items = ledger.get_items(session, draft.id)
        assert items[0].total_price == 200

    def test_numbers_increase(self, session, draft):
        second = lifecycle.create_quotation(session, HEADER)
        assert second.quotation_number.endswith("-ME-002")

    def test_number_not_reused_after_delete(self, session, draft):
        lifecycle.delete(session, draft.id)
        again = lifecycle.create_quotation(session, HEADER)
        assert again.quotation_number.endswith("-ME-002")

    def test_header_only_then_staged(self, session):
        quotation = lifecycle.create_quotation(session, HEADER)
        assert quotation.total == 0

        lifecycle.add_products(session, quotation.id, _items(quantity=1, unit_price=50))
        quotation = lifecycle.add_financial_details(session, quotation.id, _financials(cgst=5, sgst=5, discount=0))
        assert quotation.subtotal == 50
        assert quotation.total == 60

    def test_add_products_replaces_items(self, session, draft):
        lifecycle.add_products(session, draft.id, _items(quantity=1, unit_price=10))
        items = ledger.get_items(session, draft.id)
        assert len(items) == 1
        assert items[0].total_price == 10

    def test_item_filled_from_catalog(self, session):
        root = category_tree.create_category(session, "Furniture")
        product = catalog.create_product(
            session,
            ProductIn(product_name="Chair", code="CH-1", main_category_id=root.id, price=45, unit="pcs"),
        )
        quotation = lifecycle.create_quotation(
            session, HEADER, [QuotationItemIn(product_id=product.id, quantity=2)]
        )
        item = ledger.get_items(session, quotation.id)[0]
        assert item.product_name == "Chair"
        assert item.unit_price == 45
        assert item.category == "Furniture"
        assert quotation.total == 90

    def test_item_without_price_rejected(self, session):
        with pytest.raises(ValidationError):
            lifecycle.create_quotation(
                session, HEADER, [QuotationItemIn(product_name="Mystery", quantity=1)]
            )

    def test_timestamps_survive_reload(self, session):
        issued = datetime(2024, 6, 3, 14, 30, 15)
        quotation = lifecycle.create_quotation(session, HEADER.model_copy(update={"date": issued}))
        session.expire_all()

        reloaded = lifecycle.get_quotation(session, quotation.id)
        assert reloaded.date == issued
        assert reloaded.created_at <= reloaded.updated_at

    def test_unknown_client_rejected(self, session):
        header = HEADER.model_copy(update={"client_id": 77})
        with pytest.raises(ValidationError):
            lifecycle.create_quotation(session, header)


class TestFinalize:
    def test_seeds_ledger(self, session, sent):
        assert sent.status == QuotationStatus.SENT
        assert sent.running_balance == 208

        entries = ledger.get_transactions(session, sent.id)
        assert len(entries) == 1
        assert entries[0].type == "credit"
        assert entries[0].amount == 208
        assert entries[0].balance_after == 208

    def test_twice(self, session, sent):
        with pytest.raises(InvalidStatus):
            lifecycle.finalize(session, sent.id)
        assert len(ledger.get_transactions(session, sent.id)) == 1

    def test_without_items(self, session):
        quotation = lifecycle.create_quotation(session, HEADER)
        with pytest.raises(ValidationError):
            lifecycle.finalize(session, quotation.id)
        assert lifecycle.get_quotation(session, quotation.id).status == QuotationStatus.DRAFT

    def test_zero_total(self, session):
        quotation = lifecycle.create_quotation(
            session, HEADER, _items(quantity=1, unit_price=10), _financials(cgst=0, sgst=0, discount=10)
        )
        with pytest.raises(ValidationError):
            lifecycle.finalize(session, quotation.id)

    def test_draft_entries_carry_into_balance(self, session, draft):
        ledger.append_transaction(session, draft.id, TransactionIn(type="credit", amount=5))
        quotation = lifecycle.finalize(session, draft.id)
        assert quotation.running_balance == 213

    def test_staged_edits_locked_after_finalize(self, session, sent):
        with pytest.raises(InvalidStatus):
            lifecycle.add_products(session, sent.id, _items())
        with pytest.raises(InvalidStatus):
            lifecycle.add_financial_details(session, sent.id, _financials())


class TestPayments:
    def test_payment_credits_ledger(self, session, sent):
        quotation = ledger.apply_payment(session, sent.id, PaymentIn(amount_received=100))
        assert quotation.running_balance == 308

        view = lifecycle.get_view(session, sent.id)
        assert view.paid == 100
        assert view.due == 108
        assert [p.amount_received for p in view.payments] == [100]
        last = view.transactions[-1]
        assert last.type == "credit"
        assert last.note == "Payment received"
        assert last.payment_mode == "Bank Transfer"

    def test_overpayment_changes_nothing(self, session, sent):
        ledger.apply_payment(session, sent.id, PaymentIn(amount_received=200))
        with pytest.raises(OverPayment):
            ledger.apply_payment(session, sent.id, PaymentIn(amount_received=9))

        view = lifecycle.get_view(session, sent.id)
        assert view.paid == 200
        assert view.quotation.running_balance == 408
        assert len(view.transactions) == 2

    def test_payment_date_survives_reload(self, session, sent):
        paid_on = datetime(2024, 7, 9, 8, 5)
        ledger.apply_payment(session, sent.id, PaymentIn(amount_received=50, payment_date=paid_on))
        session.expire_all()

        payment = lifecycle.get_view(session, sent.id).payments[0]
        assert payment.payment_date == paid_on

    def test_exact_settlement(self, session, sent):
        ledger.apply_payment(session, sent.id, PaymentIn(amount_received=208))
        assert lifecycle.get_view(session, sent.id).due == 0

    def test_draft_refuses_payment(self, session, draft):
        with pytest.raises(InvalidStatus):
            ledger.apply_payment(session, draft.id, PaymentIn(amount_received=10))

    def test_approved_accepts_payment(self, session, sent):
        lifecycle.approve(session, sent.id)
        quotation = ledger.apply_payment(session, sent.id, PaymentIn(amount_received=8))
        assert quotation.status == QuotationStatus.APPROVED

    def test_future_date_rejected(self, session, sent):
        with pytest.raises(ValidationError):
            ledger.apply_payment(
                session,
                sent.id,
                PaymentIn(amount_received=10, payment_date=utcnow() + timedelta(days=2)),
            )

    def test_raw_entries(self, session, sent):
        entry = ledger.append_transaction(
            session, sent.id, TransactionIn(type="tax", amount=8, tax_type="IGST", tax_percentage=4)
        )
        assert entry.balance_after == 200
        assert entry.seq == 1
        assert lifecycle.get_quotation(session, sent.id).running_balance == 200

    def test_tampered_balance_detected(self, session, sent):
        sent.running_balance = 1
        session.add(sent)
        session.commit()
        with pytest.raises(InvariantViolation):
            lifecycle.get_view(session, sent.id)


class TestTransitions:
    def test_approve_and_reject_only_from_sent(self, session, draft):
        with pytest.raises(InvalidStatus):
            lifecycle.approve(session, draft.id)
        with pytest.raises(InvalidStatus):
            lifecycle.reject(session, draft.id)

    def test_approved_is_frozen(self, session, sent):
        lifecycle.approve(session, sent.id)
        with pytest.raises(InvalidStatus):
            lifecycle.update(session, sent.id, QuotationUpdate(subject="Changed"))
        with pytest.raises(InvalidStatus):
            lifecycle.reject(session, sent.id)

    def test_rejected_refuses_payment(self, session, sent):
        lifecycle.reject(session, sent.id)
        with pytest.raises(InvalidStatus):
            ledger.apply_payment(session, sent.id, PaymentIn(amount_received=10))


class TestUpdate:
    def test_draft_update_recomputes(self, session, draft):
        quotation = lifecycle.update(
            session, draft.id, QuotationUpdate(items=_items(quantity=3), discount=0)
        )
        assert quotation.subtotal == 300
        assert quotation.total == 318
        assert quotation.running_balance == 0
        assert ledger.get_transactions(session, draft.id) == []

    def test_sent_increase_books_credit(self, session, sent):
        quotation = lifecycle.update(session, sent.id, QuotationUpdate(items=_items(quantity=3)))
        assert quotation.total == 308
        assert quotation.running_balance == 308

        entry = ledger.get_transactions(session, sent.id)[-1]
        assert entry.type == "credit"
        assert entry.amount == 100
        assert entry.note == "Total revised from 208.00 to 308.00"

    def test_sent_decrease_books_adjustment(self, session, sent):
        quotation = lifecycle.update(session, sent.id, QuotationUpdate(discount=20))
        assert quotation.total == 198
        assert quotation.running_balance == 198
        assert ledger.get_transactions(session, sent.id)[-1].type == "adjustment"

    def test_header_only_update_leaves_ledger(self, session, sent):
        quotation = lifecycle.update(session, sent.id, QuotationUpdate(subject="Standing desks"))
        assert quotation.subject == "Standing desks"
        assert len(ledger.get_transactions(session, sent.id)) == 1

    def test_blank_header_fields_rejected_by_schema(self):
        for field in ("quotation_name", "client_name", "subject"):
            for blank in ("", "   "):
                with pytest.raises(PydanticValidationError):
                    QuotationUpdate(**{field: blank})

    def test_blank_header_rejected_by_service(self, session, draft):
        with pytest.raises(ValidationError):
            lifecycle.update(session, draft.id, QuotationUpdate.model_construct(subject="   "))
        assert lifecycle.get_quotation(session, draft.id).subject == "Desks"

    def test_header_fields_trimmed(self, session, draft):
        quotation = lifecycle.update(session, draft.id, QuotationUpdate(client_name="  Globex "))
        assert quotation.client_name == "Globex"

    def test_total_below_paid(self, session, sent):
        ledger.apply_payment(session, sent.id, PaymentIn(amount_received=150))
        with pytest.raises(OverPayment):
            lifecycle.update(session, sent.id, QuotationUpdate(items=_items(quantity=1)))
        assert lifecycle.get_quotation(session, sent.id).total == 208


class TestDelete:
    def test_draft_soft_deleted(self, session, draft):
        lifecycle.delete(session, draft.id)
        with pytest.raises(NotFound):
            lifecycle.get_quotation(session, draft.id)
        assert lifecycle.list_quotations(session)[0] == 0

    def test_sent_cannot_be_deleted(self, session, sent):
        with pytest.raises(InvalidStatus):
            lifecycle.delete(session, sent.id)

    def test_rejected_can_be_deleted(self, session, sent):
        lifecycle.reject(session, sent.id)
        lifecycle.delete(session, sent.id)
        with pytest.raises(NotFound):
            lifecycle.get_view(session, sent.id)


class TestListing:
    def test_filters(self, session, sent):
        lifecycle.create_quotation(session, HEADER, _items(category="Lighting"))

        total, _ = lifecycle.list_quotations(session, status="Sent")
        assert total == 1
        total, _ = lifecycle.list_quotations(session, search="Acme")
        assert total == 2
        assert lifecycle.list_item_categories(session) == ["Furniture", "Lighting"]
        assert len(lifecycle.list_by_item_category(session, "Lighting")) == 1
