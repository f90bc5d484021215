"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for the
    stores, the reconciler and the deletion cascade.  They receive a
    SQLAlchemy ``Session`` and persist with ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction.  Only the InstallmentLedger (with auto_commit=True) or
      the caller commits or rolls back.  Savepoints opened by a service
      for best-effort sub-steps are the one exception, and they never
      touch the outer transaction.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from settlement_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide the ledger read path -- that belongs in
          ``settlement_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session


def as_uuid(value: UUID | str) -> UUID:
    """
    Coerce an id received from a caller to UUID.

    Raises:
        ValueError: if the value is not a UUID.
    """
    if isinstance(value, UUID):
        return value
    return UUID(str(value))
