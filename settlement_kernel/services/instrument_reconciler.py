"""
InstrumentReconciler -- keeps an installment's checks in line with a
caller-submitted list.

Responsibility:
    Diffs the submitted checks against the checks stored for one
    installment and applies the minimum set of updates, creations and
    deletions.

Architecture position:
    Kernel > Services -- called by the InstallmentLedger on create and
    update.  Uses InstrumentStore for every write.

Matching:
    1. Submitted entries carrying an ``id`` are matched to the stored check
       with that id.  An id that is not one of the installment's checks
       raises InstrumentNotFoundError before anything is written.
    2. Entries without an id are paired by position with the stored checks
       not claimed in step 1: index i updates unclaimed[i], surplus
       submitted entries are created, surplus stored checks are deleted.
    3. For modes without instruments (cash, transfer) every stored check
       of the installment is deleted.

Invariants enforced:
    - Best-effort per check: each write runs in its own SAVEPOINT.  A
      failed write is rolled back to its savepoint, logged and reported as
      an InstrumentFailure; the pass carries on and the outer transaction
      is untouched.
    - Created checks carry installment_id and parent_id, a direction fixed
      by the obligation kind and the installment label in the description.

Failure modes:
    - InstrumentNotFoundError (raised, nothing written).
    - Per-check write errors (reported, never raised).
"""

from dataclasses import replace
from typing import Callable, Sequence
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from settlement_config.schema import LedgerSettings
from settlement_kernel.domain.dtos import (
    InstrumentData,
    InstrumentFailure,
    InstrumentInfo,
    ObligationInfo,
    PersistedInstallment,
    ReconciliationReport,
)
from settlement_kernel.domain.labels import instrument_description
from settlement_kernel.domain.values import InstrumentStatus, SettlementMode
from settlement_kernel.exceptions import InstrumentNotFoundError, SettlementError
from settlement_kernel.logging_config import get_logger
from settlement_kernel.models.instrument import Instrument
from settlement_kernel.services.base import BaseService
from settlement_kernel.services.instrument_store import InstrumentStore

logger = get_logger("services.instrument_reconciler")


class InstrumentReconciler(BaseService[Instrument]):
    """
    Applies a submitted check list to one installment.

    Non-goals:
        - Does NOT validate amounts against the settlement; the ledger has
          already done that before calling reconcile().
        - Does NOT commit.
    """

    def __init__(
        self,
        session: Session,
        instrument_store: InstrumentStore | None = None,
        settings: LedgerSettings | None = None,
    ):
        super().__init__(session)
        self._store = instrument_store or InstrumentStore(session)
        self._settings = settings or LedgerSettings()

    def existing_for(
        self, installment: PersistedInstallment, owner_id: UUID
    ) -> list[InstrumentInfo]:
        """
        Stored checks of an installment, including legacy rows.

        Legacy checks (found through their label or issue date) come back
        with installment_id None; reconcile() links them.  Read-only.
        """
        linked = self._store.list_by_installment(installment.id, owner_id)
        legacy = self._store.list_by_parent_and_date_heuristic(
            installment.parent_id,
            owner_id,
            installment.sequence_number,
            installment.payment_date,
            self._settings.label_template,
        )
        return linked + legacy

    def reconcile(
        self,
        installment: PersistedInstallment,
        parent: ObligationInfo,
        submitted: Sequence[InstrumentData],
        existing: Sequence[InstrumentInfo],
        actor_id: UUID | None = None,
    ) -> ReconciliationReport:
        """
        Bring the stored checks of ``installment`` in line with ``submitted``.

        Raises:
            InstrumentNotFoundError: a submitted id is not one of ``existing``.
        """
        mode = SettlementMode(installment.settlement_mode)
        created: list[UUID] = []
        updated: list[UUID] = []
        deleted: list[UUID] = []
        failures: list[InstrumentFailure] = []

        by_id = {inst.id: inst for inst in existing}
        claimed: set[UUID] = set()
        for data in submitted:
            if data.id is None:
                continue
            if data.id not in by_id or data.id in claimed:
                raise InstrumentNotFoundError(str(data.id), str(installment.id))
            claimed.add(data.id)

        for inst in existing:
            if inst.installment_id is None:
                self._store.attach(inst.id, installment.id)
                logger.info(
                    "legacy_instrument_attached",
                    extra={
                        "instrument_id": str(inst.id),
                        "installment_id": str(installment.id),
                    },
                )

        if not mode.uses_instruments:
            for position, inst in enumerate(existing):
                if self._attempt(
                    "delete", position, inst.id, failures,
                    lambda inst=inst: self._store.delete(inst.id),
                ):
                    deleted.append(inst.id)
            return self._report(installment, created, updated, deleted, failures)

        unclaimed = [inst for inst in existing if inst.id not in claimed]
        positional_index = 0

        for position, data in enumerate(submitted):
            if data.id is not None:
                target_id = data.id
            elif positional_index < len(unclaimed):
                target_id = unclaimed[positional_index].id
                positional_index += 1
            else:
                new_data = self._with_defaults(data, installment, parent)
                info = self._attempt(
                    "create", position, None, failures,
                    lambda new_data=new_data, position=position: self._store.create(
                        owner_id=parent.owner_id,
                        parent_id=parent.id,
                        installment_id=installment.id,
                        direction=parent.kind.instrument_direction,
                        data=new_data,
                        status=InstrumentStatus(
                            self._settings.default_instrument_status
                        ),
                        position=position,
                        actor_id=actor_id,
                    ),
                )
                if info is not None:
                    created.append(info.id)
                continue

            if self._attempt(
                "update", position, target_id, failures,
                lambda target_id=target_id, data=data, position=position: (
                    self._store.update(
                        target_id, replace(data, id=None), position, actor_id
                    )
                ),
            ):
                updated.append(target_id)

        for surplus in unclaimed[positional_index:]:
            if self._attempt(
                "delete", surplus.position, surplus.id, failures,
                lambda surplus=surplus: self._store.delete(surplus.id),
            ):
                deleted.append(surplus.id)

        return self._report(installment, created, updated, deleted, failures)

    def _with_defaults(
        self,
        data: InstrumentData,
        installment: PersistedInstallment,
        parent: ObligationInfo,
    ) -> InstrumentData:
        parties = self._settings.parties_for(parent.kind)
        return replace(
            data,
            id=None,
            payer_name=data.payer_name or parties.payer_name or parent.label,
            payee_name=data.payee_name or parties.payee_name or parent.label,
            issue_date=data.issue_date or installment.payment_date,
            description=data.description
            or instrument_description(
                installment.sequence_number, self._settings.label_template
            ),
        )

    def _attempt(
        self,
        operation: str,
        position: int,
        instrument_id: UUID | None,
        failures: list[InstrumentFailure],
        write: Callable[[], object],
    ):
        """
        Run one check write inside a savepoint.

        Returns the write's result (True when it returns None), or None if
        the write failed and was rolled back.
        """
        savepoint = self.session.begin_nested()
        try:
            result = write()
            savepoint.commit()
        except (SQLAlchemyError, SettlementError, ValueError) as exc:
            savepoint.rollback()
            failures.append(
                InstrumentFailure(
                    operation=operation,
                    position=position,
                    instrument_id=instrument_id,
                    error_type=type(exc).__name__,
                    message=str(exc),
                )
            )
            logger.warning(
                "instrument_reconcile_failed",
                extra={
                    "operation": operation,
                    "position": position,
                    "instrument_id": str(instrument_id) if instrument_id else None,
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            return None
        return True if result is None else result

    @staticmethod
    def _report(
        installment: PersistedInstallment,
        created: list[UUID],
        updated: list[UUID],
        deleted: list[UUID],
        failures: list[InstrumentFailure],
    ) -> ReconciliationReport:
        report = ReconciliationReport(
            created=tuple(created),
            updated=tuple(updated),
            deleted=tuple(deleted),
            failures=tuple(failures),
        )
        logger.info(
            "instruments_reconciled",
            extra={
                "installment_id": str(installment.id),
                "created": len(report.created),
                "updated": len(report.updated),
                "deleted": len(report.deleted),
                "failed": len(report.failures),
            },
        )
        return report
