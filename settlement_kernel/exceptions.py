"""
Typed Exception Hierarchy for the Settlement Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (HTTP handlers, import jobs, print tooling) must react
to failures precisely: a missing sale is a 404, a bad cash/check split is a
form error, a sequence race is retried.  Every error therefore has:

  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

Example:
    try:
        ledger.create_installment(sale_id, settlement, cheques)
    except AmountExceedsRemainingError as e:
        api_response(code=e.code, max_allowed=e.max_allowed)
    except ConcurrencyConflictError:
        retry()

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SettlementError (base)
    |
    +-- NotFoundError
    |   +-- ObligationNotFoundError
    |   +-- InstallmentNotFoundError
    |   +-- InstrumentNotFoundError
    |
    +-- InvariantViolationError
    |   +-- AmountExceedsRemainingError
    |
    +-- InvalidModeCombinationError
    |
    +-- ImmutableVirtualInstallmentError
    |
    +-- ConcurrencyConflictError
    |
    +-- PartialReconciliationFailure

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|-----------------------------------
Not found       | OBLIGATION_NOT_FOUND          | Sale/expense missing or not owned
                | INSTALLMENT_NOT_FOUND         | Installment missing or not owned
                | INSTRUMENT_NOT_FOUND          | Check id unknown for installment
----------------|-------------------------------|-----------------------------------
Invariants      | INVARIANT_VIOLATION           | declared+undeclared != paid, or
                |                               | cash+check != paid (tolerance)
                | AMOUNT_EXCEEDS_REMAINING      | Payment larger than what is left
----------------|-------------------------------|-----------------------------------
Mode            | INVALID_MODE_COMBINATION      | Mode incompatible with split
----------------|-------------------------------|-----------------------------------
Virtual         | IMMUTABLE_VIRTUAL_INSTALLMENT | Mutating the synthesized advance
----------------|-------------------------------|-----------------------------------
Concurrency     | CONCURRENCY_CONFLICT          | sequence_number race (retryable)
----------------|-------------------------------|-----------------------------------
Reconciliation  | PARTIAL_RECONCILIATION        | Some check writes failed; the
                |                               | installment itself was recorded

===============================================================================
PROPAGATION
===============================================================================

NotFound, InvariantViolation, InvalidModeCombination and
ImmutableVirtualInstallment are raised before any write.  ConcurrencyConflict
is raised after the transaction was rolled back.  PartialReconciliationFailure
is never raised by the ledger itself: the failures travel inside the
successful InstallmentResult and InstallmentResult.raise_for_failures()
raises it on demand.
"""

from decimal import Decimal


class SettlementError(Exception):
    """
    Base exception for all settlement kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SETTLEMENT_ERROR"
    retryable: bool = False


# Lookup failures


class NotFoundError(SettlementError):
    """Base exception for missing or foreign-owned records."""

    code: str = "NOT_FOUND"


class ObligationNotFoundError(NotFoundError):
    """Parent obligation (sale or expense) does not exist for this owner."""

    code: str = "OBLIGATION_NOT_FOUND"

    def __init__(self, parent_id: str):
        self.parent_id = parent_id
        super().__init__(f"Obligation not found: {parent_id}")


class InstallmentNotFoundError(NotFoundError):
    """Installment does not exist for this owner."""

    code: str = "INSTALLMENT_NOT_FOUND"

    def __init__(self, installment_id: str):
        self.installment_id = installment_id
        super().__init__(f"Installment not found: {installment_id}")


class InstrumentNotFoundError(NotFoundError):
    """Submitted instrument id does not belong to the installment."""

    code: str = "INSTRUMENT_NOT_FOUND"

    def __init__(self, instrument_id: str, installment_id: str | None = None):
        self.instrument_id = instrument_id
        self.installment_id = installment_id
        if installment_id:
            message = (
                f"Instrument {instrument_id} is not attached to "
                f"installment {installment_id}"
            )
        else:
            message = f"Instrument not found: {instrument_id}"
        super().__init__(message)


# Settlement data invariants


class InvariantViolationError(SettlementError):
    """
    Settlement amounts do not add up.

    Raised when declared + undeclared or cash + check differs from the paid
    amount by more than the configured tolerance.
    """

    code: str = "INVARIANT_VIOLATION"

    def __init__(
        self,
        invariant: str,
        expected: Decimal,
        actual: Decimal,
        message: str | None = None,
    ):
        self.invariant = invariant
        self.expected = expected
        self.actual = actual
        super().__init__(
            message
            or f"Invariant {invariant} violated: expected {expected}, got {actual}"
        )


class AmountExceedsRemainingError(InvariantViolationError):
    """Paid amount is larger than what remains due on the obligation."""

    code: str = "AMOUNT_EXCEEDS_REMAINING"

    def __init__(
        self,
        amount: Decimal,
        max_allowed: Decimal,
        already_paid: Decimal,
        total_due: Decimal,
    ):
        self.amount = amount
        self.max_allowed = max_allowed
        self.already_paid = already_paid
        self.total_due = total_due
        super().__init__(
            "paid_amount <= remaining",
            max_allowed,
            amount,
            message=(
                f"Amount {amount} cannot exceed {max_allowed} given "
                f"{already_paid} already paid on a total of {total_due}"
            ),
        )


class InvalidModeCombinationError(SettlementError):
    """Settlement mode is incompatible with the cash/check split supplied."""

    code: str = "INVALID_MODE_COMBINATION"

    def __init__(self, mode: str, reason: str):
        self.mode = mode
        self.reason = reason
        super().__init__(f"Invalid split for settlement mode '{mode}': {reason}")


class ImmutableVirtualInstallmentError(SettlementError):
    """
    The synthesized advance installment cannot be mutated.

    The advance lives on the parent obligation; edit it there.
    """

    code: str = "IMMUTABLE_VIRTUAL_INSTALLMENT"

    def __init__(self, installment_id: str, operation: str):
        self.installment_id = installment_id
        self.operation = operation
        super().__init__(
            f"Cannot {operation} virtual installment {installment_id}: "
            "it is derived from the obligation's advance"
        )


class ConcurrencyConflictError(SettlementError):
    """
    Another transaction took the same sequence number.

    Nothing was written; the caller may retry the whole operation.
    """

    code: str = "CONCURRENCY_CONFLICT"
    retryable: bool = True

    def __init__(self, parent_id: str, sequence_number: int):
        self.parent_id = parent_id
        self.sequence_number = sequence_number
        super().__init__(
            f"Sequence number {sequence_number} for obligation {parent_id} "
            "was taken concurrently; retry the operation"
        )


class PartialReconciliationFailure(SettlementError):
    """One or more instrument writes failed during a reconcile pass."""

    code: str = "PARTIAL_RECONCILIATION"

    def __init__(self, installment_id: str, failures: tuple):
        self.installment_id = installment_id
        self.failures = failures
        super().__init__(
            f"Installment {installment_id} recorded, but {len(failures)} "
            "instrument operation(s) failed"
        )
