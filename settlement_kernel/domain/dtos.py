"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that flow through the ledger:
    SettlementData / InstrumentData (caller input), ObligationInfo and
    InstrumentInfo (persistence boundary), the LedgerInstallment tagged
    union (PersistedInstallment | VirtualInstallment), and the result
    objects returned by ledger operations.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods exist as boundary converters but are only
    invoked from the service and selector layers.

Invariants enforced:
    - Domain logic accepts/returns DTOs, never ORM entities.
    - VirtualInstallment is a distinct type: ledger mutations dispatch on the
      type, so the synthesized advance cannot be written by construction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Union
from uuid import UUID

from settlement_kernel.db.types import ZERO
from settlement_kernel.domain.values import (
    InstallmentStatus,
    InstrumentDirection,
    InstrumentStatus,
    ObligationKind,
    ObligationStatus,
    SettlementMode,
)
from settlement_kernel.exceptions import PartialReconciliationFailure

if TYPE_CHECKING:
    from settlement_kernel.models.installment import Installment as InstallmentModel
    from settlement_kernel.models.instrument import Instrument as InstrumentModel
    from settlement_kernel.models.obligation import (
        ParentObligation as ParentObligationModel,
    )

VIRTUAL_ID_PREFIX = "virtual-"


# ---------------------------------------------------------------------------
# Caller input
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SettlementData:
    """
    Settlement fields submitted for an installment.

    On update every field overwrites the stored value; there is no partial
    patch.  scheduled_amount defaults to paid_amount (registration is
    one-shot).
    """

    paid_amount: Decimal
    settlement_mode: SettlementMode
    declared_amount: Decimal = ZERO
    undeclared_amount: Decimal = ZERO
    cash_amount: Decimal = ZERO
    check_amount: Decimal = ZERO
    payment_date: date | None = None
    due_date: date | None = None
    scheduled_amount: Decimal | None = None
    status: InstallmentStatus = InstallmentStatus.PAID
    notes: str | None = None
    represents_advance: bool = False

    @property
    def effective_scheduled_amount(self) -> Decimal:
        if self.scheduled_amount is None:
            return self.paid_amount
        return self.scheduled_amount


@dataclass(frozen=True)
class InstrumentData:
    """
    One check as submitted by the caller.

    id is the identity of an existing instrument being edited; leave it
    None for new checks (or for legacy position-based editing).
    """

    amount: Decimal
    instrument_number: str | None = None
    payer_name: str | None = None
    payee_name: str | None = None
    issue_date: date | None = None
    clearance_date: date | None = None
    status: InstrumentStatus | None = None
    description: str | None = None
    id: UUID | None = None


# ---------------------------------------------------------------------------
# Persistence boundary
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ObligationInfo:
    """Immutable snapshot of a parent obligation."""

    id: UUID
    kind: ObligationKind
    owner_id: UUID
    label: str
    total_amount: Decimal
    advance_declared: Decimal
    advance_undeclared: Decimal
    advance_cash: Decimal
    advance_check: Decimal
    advance_mode: SettlementMode | None
    advance_date: date | None
    total_paid: Decimal
    remaining_amount: Decimal
    status: ObligationStatus
    project_ref: str | None = None

    @property
    def advance_total(self) -> Decimal:
        return self.advance_declared + self.advance_undeclared

    @classmethod
    def from_model(cls, model: ParentObligationModel) -> ObligationInfo:
        return cls(
            id=model.id,
            kind=ObligationKind(model.kind),
            owner_id=model.owner_id,
            label=model.label,
            total_amount=model.total_amount,
            advance_declared=model.advance_declared or ZERO,
            advance_undeclared=model.advance_undeclared or ZERO,
            advance_cash=model.advance_cash or ZERO,
            advance_check=model.advance_check or ZERO,
            advance_mode=(
                SettlementMode(model.advance_mode) if model.advance_mode else None
            ),
            advance_date=model.advance_date,
            total_paid=model.total_paid or ZERO,
            remaining_amount=model.remaining_amount or ZERO,
            status=ObligationStatus(model.status),
            project_ref=model.project_ref,
        )


@dataclass(frozen=True)
class InstrumentInfo:
    """Immutable snapshot of a check."""

    id: UUID
    parent_id: UUID | None
    installment_id: UUID | None
    direction: InstrumentDirection
    instrument_number: str | None
    payer_name: str | None
    payee_name: str | None
    issue_date: date | None
    clearance_date: date | None
    amount: Decimal
    status: InstrumentStatus
    description: str | None
    position: int = 0

    @classmethod
    def from_model(cls, model: InstrumentModel) -> InstrumentInfo:
        return cls(
            id=model.id,
            parent_id=model.parent_id,
            installment_id=model.installment_id,
            direction=InstrumentDirection(model.direction),
            instrument_number=model.instrument_number,
            payer_name=model.payer_name,
            payee_name=model.payee_name,
            issue_date=model.issue_date,
            clearance_date=model.clearance_date,
            amount=model.amount,
            status=InstrumentStatus(model.status),
            description=model.description,
            position=model.position or 0,
        )


# ---------------------------------------------------------------------------
# Ledger installments: tagged union
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PersistedInstallment:
    """An installment row, as read from storage."""

    id: UUID
    parent_id: UUID
    sequence_number: int
    paid_amount: Decimal
    declared_amount: Decimal
    undeclared_amount: Decimal
    cash_amount: Decimal
    check_amount: Decimal
    settlement_mode: SettlementMode
    status: InstallmentStatus
    payment_date: date | None = None
    due_date: date | None = None
    scheduled_amount: Decimal = ZERO
    notes: str | None = None
    represents_advance: bool = False
    display_number: int = 0

    is_virtual = False

    @classmethod
    def from_model(cls, model: InstallmentModel) -> PersistedInstallment:
        return cls(
            id=model.id,
            parent_id=model.parent_id,
            sequence_number=model.sequence_number,
            paid_amount=model.paid_amount,
            declared_amount=model.declared_amount,
            undeclared_amount=model.undeclared_amount,
            cash_amount=model.cash_amount,
            check_amount=model.check_amount,
            settlement_mode=SettlementMode(model.settlement_mode),
            status=InstallmentStatus(model.status),
            payment_date=model.payment_date,
            due_date=model.due_date,
            scheduled_amount=model.scheduled_amount,
            notes=model.notes,
            represents_advance=bool(model.represents_advance),
            display_number=model.sequence_number,
        )


@dataclass(frozen=True)
class VirtualInstallment:
    """
    The parent's initial advance, shown as installment #1.

    Never persisted.  Its id is a string ("virtual-<parent_id>") so it can
    never collide with a stored UUID.
    """

    id: str
    parent_id: UUID
    paid_amount: Decimal
    declared_amount: Decimal
    undeclared_amount: Decimal
    cash_amount: Decimal
    check_amount: Decimal
    settlement_mode: SettlementMode | None
    payment_date: date | None = None
    status: InstallmentStatus = InstallmentStatus.PAID
    notes: str | None = "Avance initiale"
    display_number: int = 1

    is_virtual = True

    @property
    def scheduled_amount(self) -> Decimal:
        return self.paid_amount

    @property
    def represents_advance(self) -> bool:
        return True


LedgerInstallment = Union[PersistedInstallment, VirtualInstallment]


def virtual_id_for(parent_id: UUID) -> str:
    return f"{VIRTUAL_ID_PREFIX}{parent_id}"


def is_virtual_id(installment_id: object) -> bool:
    return isinstance(installment_id, str) and installment_id.startswith(
        VIRTUAL_ID_PREFIX
    )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerTotals:
    """Output of the totals calculator."""

    total_paid: Decimal
    total_due: Decimal
    remaining_amount: Decimal
    percentage: Decimal
    total_declared: Decimal
    total_undeclared: Decimal
    installments: tuple[LedgerInstallment, ...]

    @property
    def virtual_installment(self) -> VirtualInstallment | None:
        for inst in self.installments:
            if isinstance(inst, VirtualInstallment):
                return inst
        return None

    @property
    def is_settled(self) -> bool:
        return self.total_due > ZERO and self.remaining_amount == ZERO


@dataclass(frozen=True)
class LedgerView:
    """Enriched ledger of one obligation: parent, totals, instruments."""

    parent: ObligationInfo
    totals: LedgerTotals
    instruments: tuple[InstrumentInfo, ...] = ()

    @property
    def installments(self) -> tuple[LedgerInstallment, ...]:
        return self.totals.installments

    def instruments_for(self, installment_id: UUID) -> tuple[InstrumentInfo, ...]:
        return tuple(i for i in self.instruments if i.installment_id == installment_id)


@dataclass(frozen=True)
class InstrumentFailure:
    """One instrument write that failed during a reconcile pass."""

    operation: str  # "create" | "update" | "delete"
    position: int
    instrument_id: UUID | None
    error_type: str
    message: str


@dataclass(frozen=True)
class ReconciliationReport:
    """What a reconcile pass did."""

    created: tuple[UUID, ...] = ()
    updated: tuple[UUID, ...] = ()
    deleted: tuple[UUID, ...] = ()
    failures: tuple[InstrumentFailure, ...] = ()

    @property
    def is_complete(self) -> bool:
        return not self.failures

    @property
    def change_count(self) -> int:
        return len(self.created) + len(self.updated) + len(self.deleted)


@dataclass(frozen=True)
class InstallmentResult:
    """
    Outcome of create/update.

    The installment and parent aggregates are committed even when some
    instrument writes failed; those failures are listed here.
    """

    installment: PersistedInstallment
    instruments: tuple[InstrumentInfo, ...]
    totals: LedgerTotals
    reconciliation: ReconciliationReport = field(default_factory=ReconciliationReport)

    @property
    def failures(self) -> tuple[InstrumentFailure, ...]:
        return self.reconciliation.failures

    def raise_for_failures(self) -> None:
        """Raise PartialReconciliationFailure if any instrument write failed."""
        if self.reconciliation.failures:
            raise PartialReconciliationFailure(
                str(self.installment.id), self.reconciliation.failures
            )


@dataclass(frozen=True)
class DeletionOutcome:
    """Outcome of deleting an installment."""

    parent_deleted: bool
    renumbered_count: int = 0
    deleted_instruments: int = 0


@dataclass(frozen=True)
class SettlementStats:
    """Owner-wide installment statistics."""

    total_installments: int
    paid_installments: int
    pending_installments: int
    late_installments: int
    total_scheduled: Decimal
    total_paid: Decimal
    total_cash: Decimal
    total_check: Decimal
