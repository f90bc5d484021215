"""
LedgerSettings schema.

The typed, frozen form of the ledger configuration.  YAML files are parsed
into these types by the loader; the kernel receives a LedgerSettings
instance and never reads files or the environment itself.

This module has no dependency on the kernel: values that the kernel turns
into its own enums (instrument status) are kept as plain strings here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class PartyDefaults:
    """
    Names written on a new check when the caller leaves them blank.

    None means "use the obligation label" (the client name for a sale,
    the supplier label for an expense).
    """

    payer_name: str | None = None
    payee_name: str | None = None


@dataclass(frozen=True)
class LedgerSettings:
    """Runtime knobs of the installment ledger."""

    tolerance: Decimal = Decimal("0.01")
    percentage_places: int = 2
    label_template: str = "paiement #{number}"
    allow_overpayment: bool = False
    require_instrument_total_match: bool = True
    default_instrument_status: str = "issued"
    receivable_parties: PartyDefaults = field(
        default_factory=lambda: PartyDefaults(payer_name=None, payee_name="Promoteur")
    )
    payable_parties: PartyDefaults = field(
        default_factory=lambda: PartyDefaults(payer_name="Promoteur", payee_name=None)
    )
    checksum: str = ""

    def parties_for(self, kind: str) -> PartyDefaults:
        """Party defaults for an obligation kind ("receivable" / "payable")."""
        if kind == "receivable":
            return self.receivable_parties
        return self.payable_parties
