"""
Validation -- settlement amount invariants and mode rules.

Responsibility:
    Checks a SettlementData (plus its submitted instruments) before the
    ledger writes anything.  Pure: no session, no clock.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - paid_amount > 0; no negative component.
    - |paid - (declared + undeclared)| <= tolerance.
    - |paid - (cash + check)| <= tolerance.
    - cash:            check == 0, no instruments.
    - check:           cash == 0, check > 0, at least one instrument.
    - cash_and_check:  cash > 0 and check > 0, at least one instrument.
    - transfer:        check == 0, no instruments; the wired amount is
                       carried in cash_amount (the non-instrument portion).
    - Optionally: sum(instrument.amount) == check_amount.

Failure modes:
    - InvariantViolationError for arithmetic mismatches.
    - InvalidModeCombinationError for mode/split mismatches.
"""

from dataclasses import replace
from decimal import Decimal
from typing import Sequence

from settlement_kernel.db.types import DEFAULT_TOLERANCE, ZERO, amounts_match
from settlement_kernel.domain.dtos import InstrumentData, SettlementData
from settlement_kernel.domain.values import SettlementMode
from settlement_kernel.exceptions import (
    InvalidModeCombinationError,
    InvariantViolationError,
)


def normalize_settlement(settlement: SettlementData) -> SettlementData:
    """
    Fill in splits the caller left at zero.

    A settlement with no declared/undeclared split is fully declared; a
    single-channel mode with no cash/check split puts the whole amount on
    that channel.  Anything the caller did split is left untouched.
    """
    paid = settlement.paid_amount
    changes: dict = {}

    if settlement.declared_amount == ZERO and settlement.undeclared_amount == ZERO:
        changes["declared_amount"] = paid

    if settlement.cash_amount == ZERO and settlement.check_amount == ZERO:
        mode = settlement.settlement_mode
        if mode in (SettlementMode.CASH, SettlementMode.TRANSFER):
            changes["cash_amount"] = paid
        elif mode is SettlementMode.CHECK:
            changes["check_amount"] = paid

    if not changes:
        return settlement
    return replace(settlement, **changes)


def validate_settlement(
    settlement: SettlementData,
    instruments: Sequence[InstrumentData] = (),
    tolerance: Decimal = DEFAULT_TOLERANCE,
    require_instrument_total_match: bool = True,
) -> SettlementData:
    """
    Validate (after normalizing) a settlement and its instruments.

    Returns:
        The normalized SettlementData that should be persisted.

    Raises:
        InvariantViolationError: amounts do not add up.
        InvalidModeCombinationError: mode incompatible with split/instruments.
    """
    mode = SettlementMode(settlement.settlement_mode)
    settlement = normalize_settlement(replace(settlement, settlement_mode=mode))
    paid = settlement.paid_amount

    if paid <= ZERO:
        raise InvariantViolationError(
            "paid_amount > 0",
            ZERO,
            paid,
            message=f"Paid amount must be greater than 0, got {paid}",
        )

    for name in ("declared_amount", "undeclared_amount", "cash_amount", "check_amount"):
        value = getattr(settlement, name)
        if value < ZERO:
            raise InvariantViolationError(
                f"{name} >= 0",
                ZERO,
                value,
                message=f"{name} cannot be negative, got {value}",
            )

    split = settlement.declared_amount + settlement.undeclared_amount
    if not amounts_match(paid, split, tolerance):
        raise InvariantViolationError(
            "paid_amount == declared_amount + undeclared_amount",
            paid,
            split,
        )

    channels = settlement.cash_amount + settlement.check_amount
    if not amounts_match(paid, channels, tolerance):
        raise InvariantViolationError(
            "paid_amount == cash_amount + check_amount",
            paid,
            channels,
        )

    _validate_mode(settlement, mode, instruments)

    if mode.uses_instruments and require_instrument_total_match:
        instrument_total = sum((i.amount for i in instruments), ZERO)
        if not amounts_match(instrument_total, settlement.check_amount, tolerance):
            raise InvariantViolationError(
                "sum(instruments.amount) == check_amount",
                settlement.check_amount,
                instrument_total,
            )

    for position, instrument in enumerate(instruments):
        if instrument.amount <= ZERO:
            raise InvariantViolationError(
                "instrument.amount > 0",
                ZERO,
                instrument.amount,
                message=(
                    f"Instrument at position {position} must have a positive "
                    f"amount, got {instrument.amount}"
                ),
            )

    return settlement


def _validate_mode(
    settlement: SettlementData,
    mode: SettlementMode,
    instruments: Sequence[InstrumentData],
) -> None:
    cash = settlement.cash_amount
    check = settlement.check_amount

    if mode in (SettlementMode.CASH, SettlementMode.TRANSFER):
        if check != ZERO:
            raise InvalidModeCombinationError(
                mode.value, f"check_amount must be 0, got {check}"
            )
        if instruments:
            raise InvalidModeCombinationError(
                mode.value,
                f"no instruments allowed, {len(instruments)} submitted",
            )
        return

    if mode is SettlementMode.CHECK and cash != ZERO:
        raise InvalidModeCombinationError(
            mode.value, f"cash_amount must be 0, got {cash}"
        )

    if mode is SettlementMode.CASH_AND_CHECK and cash <= ZERO:
        raise InvalidModeCombinationError(
            mode.value, f"cash_amount must be greater than 0, got {cash}"
        )

    if check <= ZERO:
        raise InvalidModeCombinationError(
            mode.value, f"check_amount must be greater than 0, got {check}"
        )

    if not instruments:
        raise InvalidModeCombinationError(
            mode.value, "at least one instrument is required"
        )
