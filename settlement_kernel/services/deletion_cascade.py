"""
DeletionCascadeEngine -- deleting an installment and what hangs off it.

Responsibility:
    Deletes one persisted installment with its checks, then either deletes
    the parent obligation (nothing would be left in its ledger) or closes
    the gap in the sequence numbers of the remaining installments.

Architecture position:
    Kernel > Services -- called by InstallmentLedger.delete_installment.

Policy (counting persisted installments only):
    - count == 1 and the parent has no advance: the installment, its
      checks, the parent and any checks still tied to the parent go.
    - otherwise: the installment and its checks go; every later
      installment moves down by one and check descriptions carrying the
      old label are rewritten to the new one.
    - Deleting the installment that represents the advance first clears
      the parent's advance, so no virtual advance comes back and a sole
      advance row takes the parent with it.

Invariants enforced:
    - After a successful delete the parent's sequence numbers are exactly
      [1..count].
    - Renumbering runs in ascending order with a flush per row, so the
      (parent_id, sequence_number) unique constraint never sees a
      duplicate mid-way.

Failure modes:
    - InstallmentNotFoundError / ObligationNotFoundError (nothing written).
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from settlement_config.schema import LedgerSettings
from settlement_kernel.domain.dtos import (
    DeletionOutcome,
    ObligationInfo,
    PersistedInstallment,
)
from settlement_kernel.logging_config import get_logger
from settlement_kernel.models.installment import Installment
from settlement_kernel.selectors.installment_selector import InstallmentSelector
from settlement_kernel.services.base import BaseService
from settlement_kernel.services.instrument_store import InstrumentStore
from settlement_kernel.services.obligation_store import ParentObligationStore

logger = get_logger("services.deletion_cascade")


class DeletionCascadeEngine(BaseService[Installment]):
    """Deletes installments while keeping numbering contiguous."""

    def __init__(
        self,
        session: Session,
        obligation_store: ParentObligationStore | None = None,
        instrument_store: InstrumentStore | None = None,
        selector: InstallmentSelector | None = None,
        settings: LedgerSettings | None = None,
    ):
        super().__init__(session)
        self._obligations = obligation_store or ParentObligationStore(session)
        self._instruments = instrument_store or InstrumentStore(session)
        self._selector = selector or InstallmentSelector(session)
        self._settings = settings or LedgerSettings()

    def delete(
        self,
        installment: PersistedInstallment,
        parent: ObligationInfo,
    ) -> DeletionOutcome:
        """
        Delete ``installment`` according to the cascade policy.

        Preconditions:
            - ``installment`` belongs to ``parent`` and both are owned by
              ``parent.owner_id`` (the ledger has checked this).
        """
        owner_id = parent.owner_id
        count = self._selector.count_for_parent(parent.id, owner_id)
        deleted_instruments = self._delete_instruments(installment, owner_id)

        self.session.delete(self.session.get(Installment, installment.id))
        self.session.flush()

        # The parent mirrors the advance row; without it there is no advance
        if installment.represents_advance:
            self._obligations.clear_advance(parent.id)
            parent = self._obligations.get_by_id(parent.id, owner_id)

        if count == 1 and parent.advance_total <= 0:
            deleted_instruments += self._delete_parent(parent)
            logger.info(
                "installment_deleted_with_parent",
                extra={
                    "installment_id": str(installment.id),
                    "parent_id": str(parent.id),
                    "deleted_instruments": deleted_instruments,
                },
            )
            return DeletionOutcome(
                parent_deleted=True,
                renumbered_count=0,
                deleted_instruments=deleted_instruments,
            )

        renumbered = self._renumber_after(parent, installment.sequence_number)
        logger.info(
            "installment_deleted",
            extra={
                "installment_id": str(installment.id),
                "parent_id": str(parent.id),
                "sequence_number": installment.sequence_number,
                "renumbered_count": renumbered,
                "deleted_instruments": deleted_instruments,
            },
        )
        return DeletionOutcome(
            parent_deleted=False,
            renumbered_count=renumbered,
            deleted_instruments=deleted_instruments,
        )

    def _delete_instruments(
        self, installment: PersistedInstallment, owner_id: UUID
    ) -> int:
        targets = {
            inst.id
            for inst in self._instruments.list_by_installment(installment.id, owner_id)
        }
        # Legacy rows are only linked through their label
        targets.update(
            inst.id
            for inst in self._instruments.list_by_parent_and_date_heuristic(
                installment.parent_id,
                owner_id,
                installment.sequence_number,
                None,
                self._settings.label_template,
            )
        )
        for instrument_id in targets:
            self._instruments.delete(instrument_id)
        return len(targets)

    def _delete_parent(self, parent: ObligationInfo) -> int:
        leftovers = self._instruments.list_by_parent(parent.id, parent.owner_id)
        for inst in leftovers:
            self._instruments.delete(inst.id)
        self._obligations.delete(parent.id)
        return len(leftovers)

    def _renumber_after(self, parent: ObligationInfo, deleted_number: int) -> int:
        later = self.session.execute(
            select(Installment)
            .where(
                Installment.parent_id == parent.id,
                Installment.owner_id == parent.owner_id,
                Installment.sequence_number > deleted_number,
            )
            .order_by(Installment.sequence_number)
        ).scalars().all()

        for row in later:
            old_number = row.sequence_number
            new_number = old_number - 1
            row.sequence_number = new_number
            self.session.flush()
            self._instruments.rewrite_label(
                parent.id,
                parent.owner_id,
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
        return len(later)
