"""
Tests for the persistence layer: ParentObligationStore, InstrumentStore
and InstallmentSelector.

Covers:
- Obligation creation with and without an advance
- Owner scoping and malformed ids
- Aggregate and advance updates
- Check ordering, partial updates and label rewriting
- Installment lookups
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from settlement_kernel.domain.dtos import InstrumentData, SettlementData
from settlement_kernel.domain.values import (
    InstrumentDirection,
    InstrumentStatus,
    ObligationKind,
    ObligationStatus,
    SettlementMode,
)
from settlement_kernel.exceptions import (
    InstallmentNotFoundError,
    InstrumentNotFoundError,
    ObligationNotFoundError,
)
from settlement_kernel.selectors.installment_selector import InstallmentSelector
from settlement_kernel.services.instrument_store import InstrumentStore


@pytest.fixture
def instrument_store(session) -> InstrumentStore:
    return InstrumentStore(session)


class TestParentObligationStore:
    """Sales and expenses."""

    def test_create_without_advance(self, obligation_store, owner_id):
        info = obligation_store.create(
            kind=ObligationKind.PAYABLE,
            owner_id=owner_id,
            label="Menuiserie Idrissi",
            total_amount=Decimal("42000"),
        )

        assert info.kind is ObligationKind.PAYABLE
        assert info.total_paid == Decimal("0")
        assert info.remaining_amount == Decimal("42000")
        assert info.status is ObligationStatus.OPEN
        assert info.advance_total == Decimal("0")
        assert info.advance_mode is None

    def test_create_with_advance(self, make_obligation):
        info = make_obligation(
            advance_declared="100000",
            advance_undeclared="50000",
            advance_date=date(2024, 1, 10),
        )

        assert info.advance_declared == Decimal("100000")
        assert info.advance_undeclared == Decimal("50000")
        assert info.advance_total == Decimal("150000")
        assert info.advance_mode is SettlementMode.CASH
        assert info.advance_date == date(2024, 1, 10)
        assert info.project_ref == "RES-AL-NOUR"

    def test_undeclared_split_defaults_to_declared(self, obligation_store, owner_id):
        advance = SettlementData(
            paid_amount=Decimal("80000"),
            settlement_mode=SettlementMode.TRANSFER,
            cash_amount=Decimal("80000"),
            payment_date=date(2024, 2, 2),
        )
        info = obligation_store.create(
            kind=ObligationKind.RECEIVABLE,
            owner_id=owner_id,
            label="Client Tazi",
            total_amount=Decimal("400000"),
            advance=advance,
        )

        assert info.advance_declared == Decimal("80000")
        assert info.advance_undeclared == Decimal("0")

    def test_other_owner_cannot_read(self, obligation_store, make_obligation):
        sale = make_obligation()
        with pytest.raises(ObligationNotFoundError):
            obligation_store.get_by_id(sale.id, uuid4())

    def test_malformed_id(self, obligation_store, owner_id):
        with pytest.raises(ObligationNotFoundError):
            obligation_store.get_by_id("definitely-not-a-uuid", owner_id)

    def test_string_id_accepted(self, obligation_store, make_obligation, owner_id):
        sale = make_obligation()
        assert obligation_store.get_by_id(str(sale.id), owner_id).id == sale.id

    def test_update_aggregates(self, obligation_store, make_obligation, owner_id):
        sale = make_obligation(total="1000")

        obligation_store.update_aggregates(
            sale.id, Decimal("1000"), Decimal("0"), ObligationStatus.SETTLED
        )

        info = obligation_store.get_by_id(sale.id, owner_id)
        assert info.total_paid == Decimal("1000")
        assert info.remaining_amount == Decimal("0")
        assert info.status is ObligationStatus.SETTLED

    def test_update_advance(self, obligation_store, make_obligation, owner_id):
        sale = make_obligation(advance_declared="1000", advance_date=date(2024, 1, 1))

        obligation_store.update_advance(
            sale.id,
            SettlementData(
                paid_amount=Decimal("3000"),
                settlement_mode=SettlementMode.CHECK,
                declared_amount=Decimal("2000"),
                undeclared_amount=Decimal("1000"),
                check_amount=Decimal("3000"),
            ),
        )

        info = obligation_store.get_by_id(sale.id, owner_id)
        assert info.advance_total == Decimal("3000")
        assert info.advance_check == Decimal("3000")
        assert info.advance_mode is SettlementMode.CHECK
        assert info.advance_date == date(2024, 1, 1)

    def test_clear_advance(self, obligation_store, make_obligation, owner_id):
        sale = make_obligation(advance_declared="1000", advance_undeclared="500")

        obligation_store.clear_advance(sale.id)

        info = obligation_store.get_by_id(sale.id, owner_id)
        assert info.advance_total == Decimal("0")
        assert info.advance_mode is None
        assert info.advance_date is None

    def test_delete_unknown(self, obligation_store):
        with pytest.raises(ObligationNotFoundError):
            obligation_store.delete(uuid4())


class TestInstrumentStore:
    """Check rows."""

    def _create(self, store, sale, installment_id, amount, position=0, **fields):
        return store.create(
            owner_id=sale.owner_id,
            parent_id=sale.id,
            installment_id=installment_id,
            direction=InstrumentDirection.RECEIVED,
            data=InstrumentData(amount=Decimal(amount), **fields),
            position=position,
        )

    def test_listing_follows_position(
        self, instrument_store, ledger, make_obligation, cash, owner_id
    ):
        sale = make_obligation()
        installment = ledger.create_installment(sale.id, cash("1000")).installment
        late = self._create(instrument_store, sale, installment.id, "1", position=2)
        early = self._create(instrument_store, sale, installment.id, "2", position=0)
        middle = self._create(instrument_store, sale, installment.id, "3", position=1)

        listed = instrument_store.list_by_installment(installment.id, owner_id)

        assert [inst.id for inst in listed] == [early.id, middle.id, late.id]
        assert instrument_store.list_by_installment(installment.id, uuid4()) == []

    def test_partial_update_keeps_unset_fields(
        self, instrument_store, ledger, make_obligation, cash
    ):
        sale = make_obligation()
        installment = ledger.create_installment(sale.id, cash("1000")).installment
        created = self._create(
            instrument_store,
            sale,
            installment.id,
            "500",
            instrument_number="0042",
            payer_name="Client Benali",
            description="Chèque pour paiement #1",
        )

        updated = instrument_store.update(
            created.id,
            InstrumentData(amount=Decimal("450"), status=InstrumentStatus.CLEARED),
        )

        assert updated.amount == Decimal("450")
        assert updated.status is InstrumentStatus.CLEARED
        assert updated.instrument_number == "0042"
        assert updated.payer_name == "Client Benali"
        assert updated.description == "Chèque pour paiement #1"

    def test_unknown_instrument(self, instrument_store):
        with pytest.raises(InstrumentNotFoundError):
            instrument_store.update(uuid4(), InstrumentData(amount=Decimal("1")))
        with pytest.raises(InstrumentNotFoundError):
            instrument_store.delete(uuid4())

    def test_rewrite_label(self, instrument_store, ledger, make_obligation, cash, owner_id):
        sale = make_obligation()
        installment = ledger.create_installment(sale.id, cash("1000")).installment
        self._create(instrument_store, sale, installment.id, "1",
                     description="Chèque pour paiement #3")
        self._create(instrument_store, sale, installment.id, "1",
                     description="Chèque pour paiement #30")
        self._create(instrument_store, sale, installment.id, "1")

        rewritten = instrument_store.rewrite_label(sale.id, owner_id, 3, 2)

        assert rewritten == 1
        descriptions = [
            inst.description
            for inst in instrument_store.list_by_parent(sale.id, owner_id)
        ]
        assert "Chèque pour paiement #2" in descriptions
        assert "Chèque pour paiement #30" in descriptions
        assert None in descriptions


class TestInstallmentSelector:
    """Installment lookups."""

    def test_get_other_owner(self, session, ledger, make_obligation, cash):
        sale = make_obligation()
        created = ledger.create_installment(sale.id, cash("1000"))
        selector = InstallmentSelector(session)

        with pytest.raises(InstallmentNotFoundError):
            selector.get(created.installment.id, uuid4())

    def test_list_ordered_and_counted(self, session, ledger, make_obligation, cash, owner_id):
        sale = make_obligation()
        for amount in ("1000", "2000", "3000"):
            ledger.create_installment(sale.id, cash(amount))
        selector = InstallmentSelector(session)

        listed = selector.list_for_parent(sale.id, owner_id)

        assert [inst.sequence_number for inst in listed] == [1, 2, 3]
        assert [inst.paid_amount for inst in listed] == [
            Decimal("1000"),
            Decimal("2000"),
            Decimal("3000"),
        ]
        assert selector.count_for_parent(sale.id, owner_id) == 3
        assert selector.count_for_parent(sale.id, uuid4()) == 0
