"""
InstrumentStore -- persistence of bank checks.

Responsibility:
    Lists, creates, updates and deletes check instruments, and rewrites
    the installment label in their descriptions when installments are
    renumbered.

Architecture position:
    Kernel > Services -- persistence glue.  Called by the
    InstrumentReconciler and the DeletionCascadeEngine.

Invariants enforced:
    - Owner scoping on every list query.
    - Checks of one installment are listed in a stable order
      (position, then creation time, then id) so position-based editing
      always pairs the same rows.
    - Legacy checks (no installment_id) are linked to an installment only
      through their description label or, failing that, their issue date.

Failure modes:
    - InstrumentNotFoundError on update/delete of an unknown id.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select

from settlement_kernel.domain.dtos import InstrumentData, InstrumentInfo
from settlement_kernel.domain.labels import (
    DEFAULT_LABEL_TEMPLATE,
    references_installment,
    rewrite_installment_reference,
)
from settlement_kernel.domain.values import InstrumentDirection, InstrumentStatus
from settlement_kernel.exceptions import InstrumentNotFoundError
from settlement_kernel.logging_config import get_logger
from settlement_kernel.models.instrument import Instrument
from settlement_kernel.services.base import BaseService

logger = get_logger("services.instrument_store")

_ORDERING = (Instrument.position, Instrument.created_at, Instrument.id)


class InstrumentStore(BaseService[Instrument]):
    """Owner-scoped access to Instrument rows."""

    def list_by_installment(
        self, installment_id: UUID, owner_id: UUID
    ) -> list[InstrumentInfo]:
        rows = self.session.execute(
            select(Instrument)
            .where(
                Instrument.installment_id == installment_id,
                Instrument.owner_id == owner_id,
            )
            .order_by(*_ORDERING)
        ).scalars()
        return [InstrumentInfo.from_model(row) for row in rows]

    def list_by_parent(self, parent_id: UUID, owner_id: UUID) -> list[InstrumentInfo]:
        rows = self.session.execute(
            select(Instrument)
            .where(
                Instrument.parent_id == parent_id,
                Instrument.owner_id == owner_id,
            )
            .order_by(*_ORDERING)
        ).scalars()
        return [InstrumentInfo.from_model(row) for row in rows]

    def list_by_parent_and_date_heuristic(
        self,
        parent_id: UUID,
        owner_id: UUID,
        sequence_number: int,
        payment_date: date | None,
        label_template: str = DEFAULT_LABEL_TEMPLATE,
    ) -> list[InstrumentInfo]:
        """
        Legacy checks of a parent that belong to installment `sequence_number`.

        Only rows without installment_id are considered.  A row matches when
        its description carries the installment label; a row with no label
        at all matches when its issue date equals the payment date.
        """
        legacy = [
            inst
            for inst in self.list_by_parent(parent_id, owner_id)
            if inst.installment_id is None
        ]

        matched: list[InstrumentInfo] = []
        for inst in legacy:
            if references_installment(inst.description, sequence_number, label_template):
                matched.append(inst)
            elif (
                payment_date is not None
                and inst.issue_date == payment_date
                and not _has_any_label(inst.description, label_template)
            ):
                matched.append(inst)
        return matched

    def get(self, instrument_id: UUID) -> Instrument:
        instrument = self.session.get(Instrument, instrument_id)
        if instrument is None:
            raise InstrumentNotFoundError(str(instrument_id))
        return instrument

    def create(
        self,
        owner_id: UUID,
        parent_id: UUID,
        installment_id: UUID,
        direction: InstrumentDirection,
        data: InstrumentData,
        status: InstrumentStatus = InstrumentStatus.ISSUED,
        position: int = 0,
        actor_id: UUID | None = None,
    ) -> InstrumentInfo:
        """Insert one check; caller has already resolved defaults on ``data``."""
        instrument = Instrument(
            owner_id=owner_id,
            parent_id=parent_id,
            installment_id=installment_id,
            direction=InstrumentDirection(direction).value,
            instrument_number=data.instrument_number,
            payer_name=data.payer_name,
            payee_name=data.payee_name,
            issue_date=data.issue_date,
            clearance_date=data.clearance_date,
            amount=data.amount,
            status=InstrumentStatus(data.status or status).value,
            description=data.description,
            position=position,
            created_by_id=actor_id or owner_id,
        )
        self.session.add(instrument)
        self.session.flush()

        logger.debug(
            "instrument_created",
            extra={
                "instrument_id": str(instrument.id),
                "installment_id": str(installment_id),
                "amount": str(data.amount),
            },
        )
        return InstrumentInfo.from_model(instrument)

    def update(
        self,
        instrument_id: UUID,
        data: InstrumentData,
        position: int | None = None,
        actor_id: UUID | None = None,
    ) -> InstrumentInfo:
        """
        Overwrite the editable fields of a check.

        Fields left None on ``data`` keep their stored value, except the
        amount which is always written.
        """
        instrument = self.get(instrument_id)

        instrument.amount = data.amount
        if data.instrument_number is not None:
            instrument.instrument_number = data.instrument_number
        if data.payer_name is not None:
            instrument.payer_name = data.payer_name
        if data.payee_name is not None:
            instrument.payee_name = data.payee_name
        if data.issue_date is not None:
            instrument.issue_date = data.issue_date
        if data.clearance_date is not None:
            instrument.clearance_date = data.clearance_date
        if data.status is not None:
            instrument.status = InstrumentStatus(data.status).value
        if data.description is not None:
            instrument.description = data.description
        if position is not None:
            instrument.position = position
        if actor_id is not None:
            instrument.updated_by_id = actor_id
        self.session.flush()

        logger.debug(
            "instrument_updated",
            extra={"instrument_id": str(instrument_id), "amount": str(data.amount)},
        )
        return InstrumentInfo.from_model(instrument)

    def attach(self, instrument_id: UUID, installment_id: UUID) -> None:
        """Give a legacy check its explicit installment link."""
        instrument = self.get(instrument_id)
        instrument.installment_id = installment_id
        self.session.flush()

    def delete(self, instrument_id: UUID) -> None:
        instrument = self.get(instrument_id)
        self.session.delete(instrument)
        self.session.flush()
        logger.debug("instrument_deleted", extra={"instrument_id": str(instrument_id)})

    def rewrite_label(
        self,
        parent_id: UUID,
        owner_id: UUID,
        old_number: int,
        new_number: int,
        label_template: str = DEFAULT_LABEL_TEMPLATE,
    ) -> int:
        """
        Renumber the installment label in every check description of a parent.

        Returns:
            Number of descriptions rewritten.
        """
        rows = self.session.execute(
            select(Instrument).where(
                Instrument.parent_id == parent_id,
                Instrument.owner_id == owner_id,
                Instrument.description.is_not(None),
            )
        ).scalars()

        rewritten = 0
        for row in rows:
            new_description = rewrite_installment_reference(
                row.description, old_number, new_number, label_template
            )
            if new_description != row.description:
                row.description = new_description
                rewritten += 1

        if rewritten:
            self.session.flush()
        return rewritten


def _has_any_label(description: str | None, label_template: str) -> bool:
    if not description:
        return False
    prefix = label_template.partition("{number}")[0]
    return prefix.lower() in description.lower()
