"""
ParentObligationStore -- persistence of sales and expenses.

Responsibility:
    Creates parent obligations, reads them for one owner, writes the
    aggregate fields the ledger maintains and the advance fields an
    advance-flagged installment mirrors, and deletes them at the end of
    a deletion cascade.

Architecture position:
    Kernel > Services -- persistence glue.  Called by the InstallmentLedger
    and the DeletionCascadeEngine; the CRUD layer uses ``create``.

Invariants enforced:
    - Owner scoping: get_by_id never returns another owner's obligation.
    - total_paid / remaining_amount / status are written only through
      update_aggregates, from TotalsCalculator output.

Failure modes:
    - ObligationNotFoundError if the id is unknown or foreign-owned.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from settlement_kernel.db.types import ZERO
from settlement_kernel.domain.dtos import ObligationInfo, SettlementData
from settlement_kernel.domain.values import (
    ObligationKind,
    ObligationStatus,
    SettlementMode,
)
from settlement_kernel.exceptions import ObligationNotFoundError
from settlement_kernel.logging_config import get_logger
from settlement_kernel.models.obligation import ParentObligation
from settlement_kernel.services.base import BaseService, as_uuid

logger = get_logger("services.obligation_store")


class ParentObligationStore(BaseService[ParentObligation]):
    """Owner-scoped access to ParentObligation rows."""

    def create(
        self,
        kind: ObligationKind,
        owner_id: UUID,
        label: str,
        total_amount: Decimal,
        project_ref: str | None = None,
        advance: SettlementData | None = None,
        actor_id: UUID | None = None,
    ) -> ObligationInfo:
        """
        Create a sale (receivable) or expense (payable).

        Args:
            advance: Optional initial advance paid at signature.  Only its
                amounts, mode and payment date are kept.
        """
        kind = ObligationKind(kind)
        obligation = ParentObligation(
            kind=kind.value,
            owner_id=owner_id,
            label=label,
            project_ref=project_ref,
            total_amount=total_amount,
            total_paid=ZERO,
            remaining_amount=total_amount,
            status=ObligationStatus.OPEN.value,
            created_by_id=actor_id or owner_id,
        )
        if advance is not None:
            self._apply_advance(obligation, advance)

        self.session.add(obligation)
        self.session.flush()

        logger.info(
            "obligation_created",
            extra={
                "parent_id": str(obligation.id),
                "kind": kind.value,
                "total_amount": str(total_amount),
            },
        )
        return ObligationInfo.from_model(obligation)

    def get_model(self, parent_id: UUID | str, owner_id: UUID) -> ParentObligation:
        try:
            parent_uuid = as_uuid(parent_id)
        except ValueError:
            raise ObligationNotFoundError(str(parent_id)) from None

        obligation = self.session.execute(
            select(ParentObligation).where(
                ParentObligation.id == parent_uuid,
                ParentObligation.owner_id == owner_id,
            )
        ).scalar_one_or_none()
        if obligation is None:
            raise ObligationNotFoundError(str(parent_id))
        return obligation

    def get_by_id(self, parent_id: UUID | str, owner_id: UUID) -> ObligationInfo:
        """
        Fetch an obligation owned by ``owner_id``.

        Raises:
            ObligationNotFoundError: unknown id or another owner's row.
        """
        return ObligationInfo.from_model(self.get_model(parent_id, owner_id))

    def update_aggregates(
        self,
        parent_id: UUID,
        total_paid: Decimal,
        remaining_amount: Decimal,
        status: ObligationStatus,
        actor_id: UUID | None = None,
    ) -> None:
        obligation = self.session.get(ParentObligation, parent_id)
        if obligation is None:
            raise ObligationNotFoundError(str(parent_id))

        obligation.total_paid = total_paid
        obligation.remaining_amount = remaining_amount
        obligation.status = ObligationStatus(status).value
        if actor_id is not None:
            obligation.updated_by_id = actor_id
        self.session.flush()

        logger.debug(
            "obligation_aggregates_updated",
            extra={
                "parent_id": str(parent_id),
                "total_paid": str(total_paid),
                "remaining_amount": str(remaining_amount),
                "status": obligation.status,
            },
        )

    def update_advance(
        self,
        parent_id: UUID,
        settlement: SettlementData,
        actor_id: UUID | None = None,
    ) -> None:
        """Mirror an advance-flagged installment onto the parent's advance fields."""
        obligation = self.session.get(ParentObligation, parent_id)
        if obligation is None:
            raise ObligationNotFoundError(str(parent_id))

        self._apply_advance(obligation, settlement)
        if actor_id is not None:
            obligation.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "obligation_advance_updated",
            extra={
                "parent_id": str(parent_id),
                "advance_total": str(settlement.paid_amount),
            },
        )

    def clear_advance(self, parent_id: UUID, actor_id: UUID | None = None) -> None:
        """Zero the advance fields once the row recording the advance is gone."""
        obligation = self.session.get(ParentObligation, parent_id)
        if obligation is None:
            raise ObligationNotFoundError(str(parent_id))

        obligation.advance_declared = ZERO
        obligation.advance_undeclared = ZERO
        obligation.advance_cash = ZERO
        obligation.advance_check = ZERO
        obligation.advance_mode = None
        obligation.advance_date = None
        if actor_id is not None:
            obligation.updated_by_id = actor_id
        self.session.flush()

        logger.info("obligation_advance_cleared", extra={"parent_id": str(parent_id)})

    def delete(self, parent_id: UUID) -> None:
        obligation = self.session.get(ParentObligation, parent_id)
        if obligation is None:
            raise ObligationNotFoundError(str(parent_id))
        self.session.delete(obligation)
        self.session.flush()
        logger.info("obligation_deleted", extra={"parent_id": str(parent_id)})

    @staticmethod
    def _apply_advance(obligation: ParentObligation, settlement: SettlementData) -> None:
        declared = settlement.declared_amount
        undeclared = settlement.undeclared_amount
        if declared == ZERO and undeclared == ZERO:
            declared = settlement.paid_amount
        obligation.advance_declared = declared
        obligation.advance_undeclared = undeclared
        obligation.advance_cash = settlement.cash_amount
        obligation.advance_check = settlement.check_amount
        obligation.advance_mode = SettlementMode(settlement.settlement_mode).value
        obligation.advance_date = settlement.payment_date or obligation.advance_date
