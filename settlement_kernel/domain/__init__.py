"""
Domain layer - pure functional core of the settlement kernel.

Nothing in this package touches the database, the clock or the
environment: values, DTOs, validation, labels and the totals calculator.
"""

from settlement_kernel.domain.dtos import (
    DeletionOutcome,
    InstallmentResult,
    InstrumentData,
    InstrumentFailure,
    InstrumentInfo,
    LedgerInstallment,
    LedgerTotals,
    LedgerView,
    ObligationInfo,
    PersistedInstallment,
    ReconciliationReport,
    SettlementData,
    SettlementStats,
    VirtualInstallment,
)
from settlement_kernel.domain.totals import compute_totals
from settlement_kernel.domain.validation import validate_settlement
from settlement_kernel.domain.values import (
    InstallmentStatus,
    InstrumentDirection,
    InstrumentStatus,
    ObligationKind,
    ObligationStatus,
    SettlementMode,
)

__all__ = [
    "DeletionOutcome",
    "InstallmentResult",
    "InstallmentStatus",
    "InstrumentData",
    "InstrumentDirection",
    "InstrumentFailure",
    "InstrumentInfo",
    "InstrumentStatus",
    "LedgerInstallment",
    "LedgerTotals",
    "LedgerView",
    "ObligationInfo",
    "ObligationKind",
    "ObligationStatus",
    "PersistedInstallment",
    "ReconciliationReport",
    "SettlementData",
    "SettlementMode",
    "SettlementStats",
    "VirtualInstallment",
    "compute_totals",
    "validate_settlement",
]
