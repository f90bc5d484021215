"""
Module: settlement_kernel.models.installment
Responsibility: ORM persistence for installments -- one recorded partial
    payment against a parent obligation.
Architecture position: Kernel > Models.  May import from db/ and the pure
    domain enums only.

Invariants enforced:
    - uq_installment_sequence: (parent_id, sequence_number) is unique.  Two
      concurrent registrations computing the same next number cannot both
      commit; the loser gets an IntegrityError that the ledger surfaces as
      ConcurrencyConflictError.
    - Sequence numbers of a parent form [1..N]; the deletion cascade keeps
      them contiguous.
    - Amount invariants (declared + undeclared == paid, cash + check == paid)
      are validated by the domain layer before any write.

Failure modes:
    - IntegrityError on duplicate (parent_id, sequence_number).
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import TrackedBase, UUIDString
from settlement_kernel.domain.values import InstallmentStatus, SettlementMode


class Installment(TrackedBase):
    """
    One settlement event against a sale or expense.

    Guarantees:
        - sequence_number is 1-based and unique per parent.
        - represents_advance marks the row that records the parent's initial
          advance; while such a row exists no virtual advance is synthesized.
    """

    __tablename__ = "installments"

    __table_args__ = (
        UniqueConstraint(
            "parent_id", "sequence_number", name="uq_installment_sequence"
        ),
        Index("idx_installment_owner", "owner_id"),
    )

    parent_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("parent_obligations.id", ondelete="CASCADE"),
        nullable=False,
    )

    owner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    sequence_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    due_date: Mapped[date | None] = mapped_column(nullable=True)
    scheduled_amount: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    paid_amount: Mapped[Decimal] = mapped_column(nullable=False)
    declared_amount: Mapped[Decimal] = mapped_column(nullable=False)
    undeclared_amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_date: Mapped[date | None] = mapped_column(nullable=True)

    settlement_mode: Mapped[SettlementMode] = mapped_column(
        String(20),
        nullable=False,
    )
    cash_amount: Mapped[Decimal] = mapped_column(nullable=False)
    check_amount: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[InstallmentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=InstallmentStatus.PAID,
    )

    notes: Mapped[str | None] = mapped_column(
        String(4000),
        nullable=True,
    )

    represents_advance: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    def __repr__(self) -> str:
        return (
            f"<Installment #{self.sequence_number} parent={self.parent_id} "
            f"paid={self.paid_amount}>"
        )
