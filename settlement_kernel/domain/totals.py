"""
TotalsCalculator -- the single source of truth for paid / remaining / %.

Responsibility:
    Given a parent obligation and its persisted installments, produce the
    enriched installment list (with the virtual advance when applicable)
    and the aggregate figures every consumer displays or stores.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Called by the
    ledger for list/detail views, by every mutation to recompute parent
    aggregates, and by payment history.

Invariants enforced:
    - Pure: same inputs produce identical outputs; inputs are not mutated.
    - The virtual advance is synthesized only when the advance total is
      positive and no persisted installment represents the advance.
    - remaining_amount >= 0 and 0 <= percentage <= 100.
    - percentage is rounded with round_money, never with float arithmetic.
"""

from dataclasses import replace
from decimal import Decimal
from typing import Sequence

from settlement_kernel.db.types import ZERO, round_money
from settlement_kernel.domain.dtos import (
    LedgerInstallment,
    LedgerTotals,
    ObligationInfo,
    PersistedInstallment,
    VirtualInstallment,
    virtual_id_for,
)
from settlement_kernel.domain.values import InstallmentStatus, ObligationStatus

HUNDRED = Decimal("100")


def build_virtual_installment(parent: ObligationInfo) -> VirtualInstallment:
    """The parent's advance presented as installment #1."""
    return VirtualInstallment(
        id=virtual_id_for(parent.id),
        parent_id=parent.id,
        paid_amount=parent.advance_total,
        declared_amount=parent.advance_declared,
        undeclared_amount=parent.advance_undeclared,
        cash_amount=parent.advance_cash,
        check_amount=parent.advance_check,
        settlement_mode=parent.advance_mode,
        payment_date=parent.advance_date,
        status=InstallmentStatus.PAID,
    )


def compute_totals(
    parent: ObligationInfo,
    persisted: Sequence[PersistedInstallment],
    percentage_places: int = 2,
) -> LedgerTotals:
    """
    Compute the enriched installment list and aggregates.

    Args:
        parent: Snapshot of the parent obligation.
        persisted: Its stored installments, in any order.
        percentage_places: Decimal places kept on the completion percentage.

    Returns:
        LedgerTotals with installments ordered for display.
    """
    ordered = sorted(persisted, key=lambda inst: inst.sequence_number)

    has_virtual = parent.advance_total > ZERO and not any(
        inst.represents_advance for inst in ordered
    )
    offset = 1 if has_virtual else 0

    installments: list[LedgerInstallment] = []
    if has_virtual:
        installments.append(build_virtual_installment(parent))
    installments.extend(
        replace(inst, display_number=inst.sequence_number + offset)
        for inst in ordered
    )

    total_paid = sum((inst.paid_amount for inst in installments), ZERO)
    total_declared = sum((inst.declared_amount for inst in installments), ZERO)
    total_undeclared = sum(
        (inst.undeclared_amount for inst in installments), ZERO
    )

    total_due = parent.total_amount
    remaining = max(ZERO, total_due - total_paid)

    if total_due > ZERO:
        percentage = min(HUNDRED, total_paid / total_due * HUNDRED)
    else:
        percentage = ZERO

    return LedgerTotals(
        total_paid=total_paid,
        total_due=total_due,
        remaining_amount=remaining,
        percentage=round_money(percentage, percentage_places),
        total_declared=total_declared,
        total_undeclared=total_undeclared,
        installments=tuple(installments),
    )


def obligation_status(totals: LedgerTotals) -> ObligationStatus:
    """Aggregate status stored on the parent."""
    if totals.is_settled:
        return ObligationStatus.SETTLED
    return ObligationStatus.OPEN
