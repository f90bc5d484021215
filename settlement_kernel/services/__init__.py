"""
Services - the imperative shell of the settlement kernel.

InstallmentLedger is the public surface; the stores, the reconciler and
the deletion cascade are its collaborators.
"""

from settlement_kernel.services.deletion_cascade import DeletionCascadeEngine
from settlement_kernel.services.installment_ledger import InstallmentLedger
from settlement_kernel.services.instrument_reconciler import InstrumentReconciler
from settlement_kernel.services.instrument_store import InstrumentStore
from settlement_kernel.services.obligation_store import ParentObligationStore

__all__ = [
    "DeletionCascadeEngine",
    "InstallmentLedger",
    "InstrumentReconciler",
    "InstrumentStore",
    "ParentObligationStore",
]
