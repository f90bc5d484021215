"""
Property-based tests for ledger arithmetic.

Properties checked over generated ledgers:
- total_paid is the sum of every listed installment, virtual included
- remaining_amount never goes negative, percentage stays in [0, 100]
- Display numbers are exactly 1..len(installments)
- The virtual advance appears iff there is an advance and no
  installment records it
- compute_totals is deterministic
- validate_settlement accepts a split iff it balances within tolerance
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from settlement_kernel.domain.dtos import (
    ObligationInfo,
    PersistedInstallment,
    SettlementData,
)
from settlement_kernel.domain.totals import compute_totals
from settlement_kernel.domain.validation import validate_settlement
from settlement_kernel.domain.values import (
    InstallmentStatus,
    ObligationKind,
    ObligationStatus,
    SettlementMode,
)
from settlement_kernel.exceptions import InvariantViolationError

money = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("999999999"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
positive_money = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("999999999"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)


@st.composite
def ledgers(draw):
    """A parent obligation with a list of persisted installments."""
    declared = draw(money)
    undeclared = draw(money)
    parent = ObligationInfo(
        id=uuid4(),
        kind=draw(st.sampled_from(list(ObligationKind))),
        owner_id=uuid4(),
        label="Acquéreur",
        total_amount=draw(positive_money),
        advance_declared=declared,
        advance_undeclared=undeclared,
        advance_cash=declared + undeclared,
        advance_check=Decimal("0"),
        advance_mode=SettlementMode.CASH,
        advance_date=date(2024, 1, 1),
        total_paid=Decimal("0"),
        remaining_amount=Decimal("0"),
        status=ObligationStatus.OPEN,
    )
    amounts = draw(st.lists(positive_money, max_size=12))
    advance_index = draw(
        st.one_of(st.none(), st.integers(min_value=0, max_value=max(len(amounts) - 1, 0)))
    )
    installments = [
        PersistedInstallment(
            id=uuid4(),
            parent_id=parent.id,
            sequence_number=seq,
            paid_amount=paid,
            declared_amount=paid,
            undeclared_amount=Decimal("0"),
            cash_amount=paid,
            check_amount=Decimal("0"),
            settlement_mode=SettlementMode.CASH,
            status=InstallmentStatus.PAID,
            represents_advance=bool(amounts) and advance_index == seq - 1,
        )
        for seq, paid in enumerate(amounts, start=1)
    ]
    # Selectors hand installments over in any order
    shuffled = draw(st.permutations(installments))
    return parent, list(shuffled)


class TestTotalsProperties:
    """Invariants of compute_totals over arbitrary ledgers."""

    @given(ledgers())
    @settings(
        max_examples=200,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    def test_paid_is_sum_of_listed_installments(self, generated):
        parent, persisted = generated
        totals = compute_totals(parent, persisted)
        assert totals.total_paid == sum(
            (inst.paid_amount for inst in totals.installments), Decimal("0")
        )

    @given(ledgers())
    @settings(
        max_examples=200,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    def test_remaining_and_percentage_bounded(self, generated):
        parent, persisted = generated
        totals = compute_totals(parent, persisted)
        assert totals.remaining_amount >= 0
        assert Decimal("0") <= totals.percentage <= Decimal("100")
        expected_remaining = max(Decimal("0"), parent.total_amount - totals.total_paid)
        assert abs(totals.remaining_amount - expected_remaining) <= Decimal("0.01")

    @given(ledgers())
    @settings(
        max_examples=200,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    def test_display_numbers_contiguous(self, generated):
        parent, persisted = generated
        totals = compute_totals(parent, persisted)
        numbers = [inst.display_number for inst in totals.installments]
        assert numbers == list(range(1, len(numbers) + 1))
        stored = [inst.sequence_number for inst in totals.installments if not inst.is_virtual]
        assert stored == sorted(stored)

    @given(ledgers())
    @settings(
        max_examples=200,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    def test_virtual_entry_presence(self, generated):
        parent, persisted = generated
        totals = compute_totals(parent, persisted)
        expected = parent.advance_total > 0 and not any(
            inst.represents_advance for inst in persisted
        )
        assert (totals.virtual_installment is not None) == expected
        if expected:
            assert totals.installments[0].is_virtual

    @given(ledgers())
    @settings(
        max_examples=100,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    def test_deterministic(self, generated):
        parent, persisted = generated
        assert compute_totals(parent, persisted) == compute_totals(parent, list(persisted))


class TestValidationProperties:
    """validate_settlement and the declared/undeclared split."""

    @given(positive_money, money, money)
    @settings(
        max_examples=300,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    def test_split_accepted_iff_balanced(self, paid, declared, undeclared):
        settlement = SettlementData(
            paid_amount=paid,
            settlement_mode=SettlementMode.CASH,
            declared_amount=declared,
            undeclared_amount=undeclared,
        )
        balanced = (
            (declared == 0 and undeclared == 0)
            or abs(declared + undeclared - paid) <= Decimal("0.01")
        )
        if balanced:
            result = validate_settlement(settlement)
            assert result.cash_amount == paid
        else:
            with pytest.raises(InvariantViolationError):
                validate_settlement(settlement)
