"""
Module: settlement_kernel.selectors.installment_selector
Responsibility: Read-only queries over installments -- the ordered list of a
    parent's persisted installments, their count, single-row lookup and
    owner-wide statistics.
Architecture position: Kernel > Selectors.  Called by the InstallmentLedger
    (read path and sequence assignment) and the DeletionCascadeEngine.

Invariants enforced:
    - Installments are always returned ordered by sequence_number.
    - Every query filters on owner_id.
"""

from uuid import UUID

from sqlalchemy import case, func, select

from settlement_kernel.db.types import ZERO
from settlement_kernel.domain.dtos import PersistedInstallment, SettlementStats
from settlement_kernel.domain.values import InstallmentStatus, ObligationKind
from settlement_kernel.exceptions import InstallmentNotFoundError
from settlement_kernel.models.installment import Installment
from settlement_kernel.models.obligation import ParentObligation
from settlement_kernel.selectors.base import BaseSelector


class InstallmentSelector(BaseSelector[Installment]):
    """Read path for installments."""

    def list_for_parent(
        self, parent_id: UUID, owner_id: UUID
    ) -> list[PersistedInstallment]:
        rows = self.session.execute(
            select(Installment)
            .where(
                Installment.parent_id == parent_id,
                Installment.owner_id == owner_id,
            )
            .order_by(Installment.sequence_number)
        ).scalars()
        return [PersistedInstallment.from_model(row) for row in rows]

    def count_for_parent(self, parent_id: UUID, owner_id: UUID) -> int:
        return self.session.execute(
            select(func.count(Installment.id)).where(
                Installment.parent_id == parent_id,
                Installment.owner_id == owner_id,
            )
        ).scalar_one()

    def get(self, installment_id: UUID, owner_id: UUID) -> PersistedInstallment:
        """
        Raises:
            InstallmentNotFoundError: unknown id or another owner's row.
        """
        row = self.session.execute(
            select(Installment).where(
                Installment.id == installment_id,
                Installment.owner_id == owner_id,
            )
        ).scalar_one_or_none()
        if row is None:
            raise InstallmentNotFoundError(str(installment_id))
        return PersistedInstallment.from_model(row)

    def stats(
        self, owner_id: UUID, kind: ObligationKind | None = None
    ) -> SettlementStats:
        """Counts and sums over every installment of the owner."""

        def _count_status(status: InstallmentStatus):
            return func.sum(case((Installment.status == status.value, 1), else_=0))

        query = select(
            func.count(Installment.id),
            _count_status(InstallmentStatus.PAID),
            _count_status(InstallmentStatus.PENDING),
            _count_status(InstallmentStatus.LATE),
            func.sum(Installment.scheduled_amount),
            func.sum(Installment.paid_amount),
            func.sum(Installment.cash_amount),
            func.sum(Installment.check_amount),
        ).where(Installment.owner_id == owner_id)

        if kind is not None:
            query = query.join(
                ParentObligation, ParentObligation.id == Installment.parent_id
            ).where(ParentObligation.kind == ObligationKind(kind).value)

        (
            total,
            paid,
            pending,
            late,
            scheduled_sum,
            paid_sum,
            cash_sum,
            check_sum,
        ) = self.session.execute(query).one()

        return SettlementStats(
            total_installments=total or 0,
            paid_installments=int(paid or 0),
            pending_installments=int(pending or 0),
            late_installments=int(late or 0),
            total_scheduled=scheduled_sum if scheduled_sum is not None else ZERO,
            total_paid=paid_sum if paid_sum is not None else ZERO,
            total_cash=cash_sum if cash_sum is not None else ZERO,
            total_check=check_sum if check_sum is not None else ZERO,
        )
