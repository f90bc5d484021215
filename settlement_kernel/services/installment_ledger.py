"""
InstallmentLedger -- public surface for recording installments.

Responsibility:
    Transport-agnostic facade over the settlement kernel.  Registers,
    edits, deletes and lists the installments of one owner's sales and
    expenses, keeping the parent obligation's aggregates (total paid,
    remaining, status) in line with the TotalsCalculator after every
    mutation.

Architecture position:
    Kernel > Services -- orchestration.  Owns the transaction boundary when
    ``auto_commit=True``; with ``auto_commit=False`` the caller commits.

    create/update:  authorize -> validate -> write installment
                    -> InstrumentReconciler -> aggregates -> commit
    delete:         authorize -> DeletionCascadeEngine -> aggregates -> commit
    list/history:   InstallmentSelector -> TotalsCalculator -> LedgerView

Invariants enforced:
    - Ownership: every lookup is scoped to the ledger's owner_id.
    - Validation (invariants, mode rules, remaining bound) happens before
      the first write.
    - The virtual advance installment is never written: mutation targets
      are resolved to the LedgerInstallment union and a VirtualInstallment
      target is rejected by type.
    - An advance-flagged installment is always #1; later rows shift up.
    - Each mutation is one transaction.  The only partial outcome allowed
      is a per-check reconciliation failure, reported on the result.

Failure modes:
    - ObligationNotFoundError / InstallmentNotFoundError.
    - InvariantViolationError / AmountExceedsRemainingError /
      InvalidModeCombinationError.
    - ImmutableVirtualInstallmentError.
    - ConcurrencyConflictError when another transaction took the sequence
      number (the transaction is rolled back; the caller may retry).
"""

import time
from datetime import date
from typing import Sequence, Union
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from settlement_config.schema import LedgerSettings
from settlement_kernel.db.types import ZERO
from settlement_kernel.domain.dtos import (
    DeletionOutcome,
    InstallmentResult,
    InstrumentData,
    LedgerInstallment,
    LedgerTotals,
    LedgerView,
    ObligationInfo,
    PersistedInstallment,
    ReconciliationReport,
    SettlementData,
    SettlementStats,
    VirtualInstallment,
    is_virtual_id,
)
from settlement_kernel.domain.totals import compute_totals, obligation_status
from settlement_kernel.domain.validation import validate_settlement
from settlement_kernel.domain.values import ObligationKind
from settlement_kernel.exceptions import (
    AmountExceedsRemainingError,
    ConcurrencyConflictError,
    ImmutableVirtualInstallmentError,
    InstallmentNotFoundError,
    InstrumentNotFoundError,
    InvariantViolationError,
)
from settlement_kernel.logging_config import LogContext, get_logger
from settlement_kernel.models.installment import Installment
from settlement_kernel.selectors.installment_selector import InstallmentSelector
from settlement_kernel.services.base import as_uuid
from settlement_kernel.services.deletion_cascade import DeletionCascadeEngine
from settlement_kernel.services.instrument_reconciler import InstrumentReconciler
from settlement_kernel.services.instrument_store import InstrumentStore
from settlement_kernel.services.obligation_store import ParentObligationStore

logger = get_logger("services.installment_ledger")

_SEQUENCE_CONSTRAINT_MARKERS = (
    "uq_installment_sequence",
    "installments.parent_id, installments.sequence_number",
)

InstallmentRef = Union[UUID, str, PersistedInstallment, VirtualInstallment]


class InstallmentLedger:
    """
    One owner's view of installments across all sales and expenses.

    Contract:
        Every public mutation returns a result object or raises a typed
        SettlementError; nothing is committed when it raises.

    Non-goals:
        - Does NOT create or edit parent obligations beyond their aggregate
          and advance fields (see ParentObligationStore.create).
        - Does NOT retry on ConcurrencyConflictError.

    Usage:
        ledger = InstallmentLedger(session, owner_id=user_id,
                                   settings=get_active_settings())
        result = ledger.create_installment(sale_id, settlement, checks)
        result.raise_for_failures()   # optional strict mode
    """

    def __init__(
        self,
        session: Session,
        owner_id: UUID,
        actor_id: UUID | None = None,
        settings: LedgerSettings | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._owner_id = owner_id
        self._actor_id = actor_id or owner_id
        self._settings = settings or LedgerSettings()
        self._auto_commit = auto_commit

        self._obligations = ParentObligationStore(session)
        self._instruments = InstrumentStore(session)
        self._selector = InstallmentSelector(session)
        self._reconciler = InstrumentReconciler(
            session, self._instruments, self._settings
        )
        self._cascade = DeletionCascadeEngine(
            session,
            obligation_store=self._obligations,
            instrument_store=self._instruments,
            selector=self._selector,
            settings=self._settings,
        )

    @property
    def owner_id(self) -> UUID:
        return self._owner_id

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_installment(
        self,
        parent_id: UUID | str,
        settlement: SettlementData,
        instruments: Sequence[InstrumentData] = (),
    ) -> InstallmentResult:
        """
        Register a settlement as the next installment of a parent.

        Postconditions:
            - The installment has sequence_number = count(existing) + 1.
            - Checks are created for instrument-bearing modes.
            - Parent aggregates reflect the new totals.

        Raises:
            ObligationNotFoundError, InvariantViolationError,
            AmountExceedsRemainingError, InvalidModeCombinationError,
            ConcurrencyConflictError.
        """
        return self._run(
            "installment_create",
            {"parent_id": str(parent_id)},
            lambda: self._do_create(parent_id, settlement, tuple(instruments)),
        )

    def update_installment(
        self,
        installment_id: InstallmentRef,
        settlement: SettlementData,
        instruments: Sequence[InstrumentData] = (),
    ) -> InstallmentResult:
        """
        Overwrite the settlement data of an installment and reconcile its checks.

        sequence_number and the represents_advance flag are kept; every
        other settlement field takes the submitted value.

        Raises:
            InstallmentNotFoundError, ImmutableVirtualInstallmentError,
            InvariantViolationError, AmountExceedsRemainingError,
            InvalidModeCombinationError, InstrumentNotFoundError.
        """
        return self._run(
            "installment_update",
            {"installment_id": _ref_str(installment_id)},
            lambda: self._do_update(installment_id, settlement, tuple(instruments)),
        )

    def delete_installment(self, installment_id: InstallmentRef) -> DeletionOutcome:
        """
        Delete an installment, cascading to the parent when it was the last.

        Raises:
            InstallmentNotFoundError, ImmutableVirtualInstallmentError.
        """
        return self._run(
            "installment_delete",
            {"installment_id": _ref_str(installment_id)},
            lambda: self._do_delete(installment_id),
        )

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def list_installments(self, parent_id: UUID | str) -> LedgerView:
        """Enriched ledger of a parent: virtual advance, installments, totals, checks."""
        parent = self._obligations.get_by_id(parent_id, self._owner_id)
        return LedgerView(
            parent=parent,
            totals=self._totals_for(parent),
            instruments=tuple(
                self._instruments.list_by_parent(parent.id, self._owner_id)
            ),
        )

    def payment_history(self, parent_id: UUID | str) -> tuple[LedgerInstallment, ...]:
        """Installments that moved money, most recent payment first."""
        view = self.list_installments(parent_id)
        paid = [inst for inst in view.installments if inst.paid_amount > ZERO]
        paid.sort(key=lambda inst: inst.display_number, reverse=True)
        paid.sort(key=lambda inst: inst.payment_date or date.min, reverse=True)
        return tuple(paid)

    def settlement_stats(self, kind: ObligationKind | None = None) -> SettlementStats:
        """Owner-wide installment counts and sums, optionally for one kind."""
        return self._selector.stats(self._owner_id, kind)

    # ------------------------------------------------------------------
    # Transaction wrapper
    # ------------------------------------------------------------------

    def _run(self, operation: str, context: dict, work):
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(self._actor_id),
            **context,
        ):
            logger.info(f"{operation}_started")
            t0 = time.monotonic()
            try:
                result = work()
                if self._auto_commit:
                    self._session.commit()
            except Exception:
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                if self._auto_commit:
                    self._session.rollback()
                logger.error(
                    f"{operation}_failed",
                    extra={"duration_ms": duration_ms},
                    exc_info=True,
                )
                raise

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info(
                f"{operation}_completed",
                extra={"duration_ms": duration_ms},
            )
            return result

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _do_create(
        self,
        parent_id: UUID | str,
        settlement: SettlementData,
        instruments: tuple[InstrumentData, ...],
    ) -> InstallmentResult:
        parent = self._obligations.get_by_id(parent_id, self._owner_id)
        settlement = self._validate(settlement, instruments)

        persisted = self._selector.list_for_parent(parent.id, self._owner_id)
        totals = compute_totals(parent, persisted, self._settings.percentage_places)

        already_paid = totals.total_paid
        if settlement.represents_advance:
            if any(inst.represents_advance for inst in persisted):
                raise InvariantViolationError(
                    "at most one installment represents the advance",
                    1,
                    2,
                    message=(
                        f"Obligation {parent.id} already has an installment "
                        "recording its advance"
                    ),
                )
            # The new row takes over from the virtual advance
            if totals.virtual_installment is not None:
                already_paid -= totals.virtual_installment.paid_amount
        self._check_remaining(settlement, already_paid, totals.total_due)

        count = self._selector.count_for_parent(parent.id, self._owner_id)
        shift_existing = settlement.represents_advance and count > 0
        sequence_number = 1 if shift_existing else count + 1
        installment = self._insert_installment(
            parent, settlement, sequence_number, shift_existing=shift_existing
        )

        report = ReconciliationReport()
        if settlement.settlement_mode.uses_instruments:
            report = self._reconciler.reconcile(
                installment, parent, instruments, (), self._actor_id
            )

        if settlement.represents_advance:
            self._obligations.update_advance(parent.id, settlement, self._actor_id)

        new_totals = self._refresh_aggregates(parent.id)
        logger.info(
            "installment_created",
            extra={
                "installment_id": str(installment.id),
                "sequence_number": sequence_number,
                "paid_amount": str(settlement.paid_amount),
                "settlement_mode": settlement.settlement_mode.value,
                "instrument_failures": len(report.failures),
            },
        )
        return self._result(installment.id, new_totals, report)

    def _do_update(
        self,
        installment_id: InstallmentRef,
        settlement: SettlementData,
        instruments: tuple[InstrumentData, ...],
    ) -> InstallmentResult:
        target = self._resolve(installment_id)
        if isinstance(target, VirtualInstallment):
            raise ImmutableVirtualInstallmentError(str(target.id), "update")

        parent = self._obligations.get_by_id(target.parent_id, self._owner_id)
        settlement = self._validate(settlement, instruments)

        # Existing-check ids must be known before the first write
        existing = self._reconciler.existing_for(target, self._owner_id)
        known_ids = {inst.id for inst in existing}
        seen: set[UUID] = set()
        for data in instruments:
            if data.id is None:
                continue
            if data.id not in known_ids or data.id in seen:
                raise InstrumentNotFoundError(str(data.id), str(target.id))
            seen.add(data.id)

        totals = self._totals_for(parent)
        self._check_remaining(
            settlement, totals.total_paid - target.paid_amount, totals.total_due
        )

        row = self._session.get(Installment, target.id)
        row.paid_amount = settlement.paid_amount
        row.declared_amount = settlement.declared_amount
        row.undeclared_amount = settlement.undeclared_amount
        row.cash_amount = settlement.cash_amount
        row.check_amount = settlement.check_amount
        row.settlement_mode = settlement.settlement_mode.value
        row.payment_date = settlement.payment_date
        row.due_date = settlement.due_date
        row.scheduled_amount = settlement.effective_scheduled_amount
        row.status = settlement.status.value
        row.notes = settlement.notes
        row.updated_by_id = self._actor_id
        self._session.flush()

        updated = PersistedInstallment.from_model(row)
        report = self._reconciler.reconcile(
            updated, parent, instruments, existing, self._actor_id
        )

        if updated.represents_advance:
            self._obligations.update_advance(parent.id, settlement, self._actor_id)

        new_totals = self._refresh_aggregates(parent.id)
        logger.info(
            "installment_updated",
            extra={
                "installment_id": str(updated.id),
                "sequence_number": updated.sequence_number,
                "paid_amount": str(settlement.paid_amount),
                "settlement_mode": settlement.settlement_mode.value,
                "instruments_created": len(report.created),
                "instruments_updated": len(report.updated),
                "instruments_deleted": len(report.deleted),
                "instrument_failures": len(report.failures),
            },
        )
        return self._result(updated.id, new_totals, report)

    def _do_delete(self, installment_id: InstallmentRef) -> DeletionOutcome:
        target = self._resolve(installment_id)
        if isinstance(target, VirtualInstallment):
            raise ImmutableVirtualInstallmentError(str(target.id), "delete")

        parent = self._obligations.get_by_id(target.parent_id, self._owner_id)
        outcome = self._cascade.delete(target, parent)
        if not outcome.parent_deleted:
            self._refresh_aggregates(parent.id)
        return outcome

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve(self, ref: InstallmentRef) -> LedgerInstallment:
        """Resolve a caller reference to the Persisted | Virtual union."""
        if isinstance(ref, (PersistedInstallment, VirtualInstallment)):
            ref = ref.id

        if is_virtual_id(ref):
            parent_ref = str(ref).split("-", 1)[1]
            parent = self._obligations.get_by_id(parent_ref, self._owner_id)
            virtual = self._totals_for(parent).virtual_installment
            if virtual is None:
                raise InstallmentNotFoundError(str(ref))
            return virtual

        try:
            installment_uuid = as_uuid(ref)
        except ValueError:
            raise InstallmentNotFoundError(str(ref)) from None
        return self._selector.get(installment_uuid, self._owner_id)

    def _validate(
        self, settlement: SettlementData, instruments: tuple[InstrumentData, ...]
    ) -> SettlementData:
        return validate_settlement(
            settlement,
            instruments,
            tolerance=self._settings.tolerance,
            require_instrument_total_match=self._settings.require_instrument_total_match,
        )

    def _check_remaining(self, settlement, already_paid, total_due) -> None:
        if self._settings.allow_overpayment:
            return
        max_allowed = max(ZERO, total_due - already_paid)
        if settlement.paid_amount > max_allowed + self._settings.tolerance:
            raise AmountExceedsRemainingError(
                amount=settlement.paid_amount,
                max_allowed=max_allowed,
                already_paid=already_paid,
                total_due=total_due,
            )

    def _insert_installment(
        self,
        parent: ObligationInfo,
        settlement: SettlementData,
        sequence_number: int,
        shift_existing: bool = False,
    ) -> PersistedInstallment:
        row = Installment(
            parent_id=parent.id,
            owner_id=self._owner_id,
            sequence_number=sequence_number,
            due_date=settlement.due_date,
            scheduled_amount=settlement.effective_scheduled_amount,
            paid_amount=settlement.paid_amount,
            declared_amount=settlement.declared_amount,
            undeclared_amount=settlement.undeclared_amount,
            payment_date=settlement.payment_date,
            settlement_mode=settlement.settlement_mode.value,
            cash_amount=settlement.cash_amount,
            check_amount=settlement.check_amount,
            status=settlement.status.value,
            notes=settlement.notes,
            represents_advance=settlement.represents_advance,
            created_by_id=self._actor_id,
        )

        # Savepoint: a lost sequence race leaves the outer transaction usable
        savepoint = self._session.begin_nested()
        try:
            if shift_existing:
                self._shift_up(parent)
            self._session.add(row)
            self._session.flush()
            savepoint.commit()
        except IntegrityError as exc:
            savepoint.rollback()
            if not _is_sequence_conflict(exc):
                raise
            logger.warning(
                "installment_sequence_conflict",
                extra={"sequence_number": sequence_number},
            )
            raise ConcurrencyConflictError(str(parent.id), sequence_number) from exc
        return PersistedInstallment.from_model(row)

    def _shift_up(self, parent: ObligationInfo) -> int:
        """Move every installment of ``parent`` up one number to free #1."""
        rows = self._session.execute(
            select(Installment)
            .where(
                Installment.parent_id == parent.id,
                Installment.owner_id == self._owner_id,
            )
            .order_by(Installment.sequence_number.desc())
        ).scalars().all()

        # Highest first, so neither the unique sequence nor a label collides
        for row in rows:
            old_number = row.sequence_number
            new_number = old_number + 1
            row.sequence_number = new_number
            self._session.flush()
            self._instruments.rewrite_label(
                parent.id,
                self._owner_id,
                old_number,
                new_number,
                self._settings.label_template,
            )
            logger.debug(
                "installment_renumbered",
                extra={
                    "installment_id": str(row.id),
                    "old_number": old_number,
                    "new_number": new_number,
                },
            )
        return len(rows)

    def _totals_for(self, parent: ObligationInfo) -> LedgerTotals:
        persisted = self._selector.list_for_parent(parent.id, self._owner_id)
        return compute_totals(parent, persisted, self._settings.percentage_places)

    def _refresh_aggregates(self, parent_id: UUID) -> LedgerTotals:
        parent = self._obligations.get_by_id(parent_id, self._owner_id)
        totals = self._totals_for(parent)
        self._obligations.update_aggregates(
            parent.id,
            totals.total_paid,
            totals.remaining_amount,
            obligation_status(totals),
            self._actor_id,
        )
        return totals

    def _result(
        self,
        installment_id: UUID,
        totals: LedgerTotals,
        report: ReconciliationReport,
    ) -> InstallmentResult:
        installment = next(
            inst
            for inst in totals.installments
            if isinstance(inst, PersistedInstallment) and inst.id == installment_id
        )
        return InstallmentResult(
            installment=installment,
            instruments=tuple(
                self._instruments.list_by_installment(installment_id, self._owner_id)
            ),
            totals=totals,
            reconciliation=report,
        )


def _is_sequence_conflict(exc: IntegrityError) -> bool:
    text = str(exc.orig)
    return any(marker in text for marker in _SEQUENCE_CONSTRAINT_MARKERS)


def _ref_str(ref: InstallmentRef) -> str:
    return str(getattr(ref, "id", ref))
