"""ORM models for the settlement kernel."""

from settlement_kernel.models.installment import Installment
from settlement_kernel.models.instrument import Instrument
from settlement_kernel.models.obligation import ParentObligation

__all__ = [
    "ParentObligation",
    "Installment",
    "Instrument",
]
