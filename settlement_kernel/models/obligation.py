"""
Module: settlement_kernel.models.obligation
Responsibility: ORM persistence for parent obligations -- client sales
    (receivables) and supplier expenses (payables) -- against which
    installments are recorded.
Architecture position: Kernel > Models.  May import from db/ and the pure
    domain enums only.  MUST NOT import from services/ or selectors/.

Invariants enforced:
    - total_paid, remaining_amount and status are aggregate fields written
      only by the installment ledger, always from the totals calculator.
    - advance_* fields describe the initial advance paid at signature; they
      are the source of the virtual first installment.

Failure modes:
    - IntegrityError if created_by_id / owner_id are missing.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import TrackedBase, UUIDString
from settlement_kernel.domain.values import (
    ObligationKind,
    ObligationStatus,
    SettlementMode,
)


class ParentObligation(TrackedBase):
    """
    A sale or an expense with a total amount and an optional initial advance.

    Contract:
        Created by the CRUD layer, mutated by the ledger only on its
        aggregate fields, destroyed by the deletion cascade when its last
        installment goes away.

    Guarantees:
        - owner_id scopes every ledger query; no cross-owner access.
        - kind is fixed for the life of the row.
    """

    __tablename__ = "parent_obligations"

    __table_args__ = (
        Index("idx_obligation_owner", "owner_id"),
        Index("idx_obligation_kind", "kind"),
    )

    kind: Mapped[ObligationKind] = mapped_column(
        String(20),
        nullable=False,
    )

    owner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # Client name for a sale, expense label for an expense
    label: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    project_ref: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    total_amount: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    # Initial advance paid at signature
    advance_declared: Mapped[Decimal | None] = mapped_column(nullable=True)
    advance_undeclared: Mapped[Decimal | None] = mapped_column(nullable=True)
    advance_cash: Mapped[Decimal | None] = mapped_column(nullable=True)
    advance_check: Mapped[Decimal | None] = mapped_column(nullable=True)
    advance_mode: Mapped[SettlementMode | None] = mapped_column(
        String(20),
        nullable=True,
    )
    advance_date: Mapped[date | None] = mapped_column(nullable=True)

    # Aggregates maintained by the ledger
    total_paid: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    remaining_amount: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    status: Mapped[ObligationStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ObligationStatus.OPEN,
    )

    def __repr__(self) -> str:
        return (
            f"<ParentObligation {self.kind}:{self.label} "
            f"total={self.total_amount} paid={self.total_paid}>"
        )
