"""
Values -- enumerations shared by the ORM models and the pure domain.

Architecture position:
    Kernel > Domain -- pure, zero I/O, no SQLAlchemy imports.  Models import
    these enums so that the persisted string values and the domain values
    are the same objects.
"""

from enum import Enum


class ObligationKind(str, Enum):
    """
    Which side of the developer's books an obligation sits on.

    Contract: A Sale is a RECEIVABLE (the client pays the developer); an
    Expense is a PAYABLE (the developer pays a supplier).  The kind fixes the
    direction of every check written against its installments.
    """

    RECEIVABLE = "receivable"
    PAYABLE = "payable"

    @property
    def instrument_direction(self) -> "InstrumentDirection":
        if self is ObligationKind.RECEIVABLE:
            return InstrumentDirection.RECEIVED
        return InstrumentDirection.GIVEN


class ObligationStatus(str, Enum):
    """Aggregate status maintained by the ledger."""

    OPEN = "open"
    SETTLED = "settled"


class SettlementMode(str, Enum):
    """How an installment was paid."""

    CASH = "cash"
    CHECK = "check"
    CASH_AND_CHECK = "cash_and_check"
    TRANSFER = "transfer"

    @property
    def uses_instruments(self) -> bool:
        """True for modes that carry bank-check instruments."""
        return self in (SettlementMode.CHECK, SettlementMode.CASH_AND_CHECK)


class InstallmentStatus(str, Enum):
    """Installment lifecycle status."""

    PENDING = "pending"
    PAID = "paid"
    LATE = "late"
    CANCELLED = "cancelled"


class InstrumentStatus(str, Enum):
    """Check lifecycle: ISSUED -> CLEARED, or ISSUED -> CANCELLED."""

    ISSUED = "issued"
    CLEARED = "cleared"
    CANCELLED = "cancelled"


class InstrumentDirection(str, Enum):
    """RECEIVED from a client, or GIVEN to a supplier."""

    RECEIVED = "received"
    GIVEN = "given"
