"""
Settlement Kernel

An installment ledger for real-estate obligations with:
- Atomic installment registration, update and deletion
- Check-instrument reconciliation per installment
- Contiguous sequence numbering with cascading renumbering
- A single totals computation shared by every reader
"""

__version__ = "0.1.0"
