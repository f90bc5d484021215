"""
Module: settlement_kernel.models.instrument
Responsibility: ORM persistence for bank-check instruments received from
    clients or given to suppliers.
Architecture position: Kernel > Models.  May import from db/ and the pure
    domain enums only.

Invariants enforced:
    - installment_id is the correlation key for rows written by this kernel.
    - Legacy rows have no installment_id; for them the description text
      ("... paiement #N ...") is the only link to an installment and it is
      rewritten whenever installments are renumbered.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import TrackedBase, UUIDString
from settlement_kernel.domain.values import InstrumentDirection, InstrumentStatus


class Instrument(TrackedBase):
    """A bank check, optionally attached to an installment."""

    __tablename__ = "instruments"

    __table_args__ = (
        Index("idx_instrument_owner", "owner_id"),
        Index("idx_instrument_parent", "parent_id"),
        Index("idx_instrument_installment", "installment_id"),
    )

    owner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("parent_obligations.id", ondelete="SET NULL"),
        nullable=True,
    )

    installment_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("installments.id", ondelete="SET NULL"),
        nullable=True,
    )

    direction: Mapped[InstrumentDirection] = mapped_column(
        String(20),
        nullable=False,
    )

    instrument_number: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    payer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payee_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    issue_date: Mapped[date | None] = mapped_column(nullable=True)
    clearance_date: Mapped[date | None] = mapped_column(nullable=True)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[InstrumentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=InstrumentStatus.ISSUED,
    )

    description: Mapped[str | None] = mapped_column(
        String(4000),
        nullable=True,
    )

    # Slot within the installment; orders position-based editing
    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    def __repr__(self) -> str:
        return f"<Instrument {self.instrument_number} amount={self.amount}>"
