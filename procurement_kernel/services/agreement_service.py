"""
AgreementLifecycleManager -- creation and lookup of procurement agreements.

Responsibility:
    Validates and persists new agreements with their immutable line items,
    assigning the year-scoped ``AGR-YYYY-NNN`` code.  Status transitions are
    NOT applied here; ApprovalActionProcessor is the only writer of
    ``status``.

Invariants enforced:
    - ``total_value`` == sum(quantity x unit_price) over the items at
      creation, and is never recomputed.
    - New agreements start in ``pending_vendor``.
    - The acting user is passed explicitly; identity is never inferred.

Failure modes:
    - ValidationError: no items, non-positive quantity/price, blank title,
      or end_date <= start_date.
    - VendorNotFoundError / CategoryNotFoundError / UserNotFoundError.
    - AgreementNotFoundError from get_agreement().
"""

from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select

from procurement_kernel.domain.dtos import (
    Agreement,
    AgreementLineSpec,
    parse_date,
    require_text,
)
from procurement_kernel.domain.lifecycle import AgreementStatus
from procurement_kernel.exceptions import AgreementNotFoundError, ValidationError
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.models.agreement import AgreementItemModel, AgreementModel
from procurement_kernel.services.base import BaseService
from procurement_kernel.services.reference_data import ReferenceDataService
from procurement_kernel.services.sequence_service import SequenceService

logger = get_logger("services.agreement")

AGREEMENT_CODE_PREFIX = "AGR"
AGREEMENT_CODE_WIDTH = 3


class AgreementLifecycleManager(BaseService):

    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        self._sequences = SequenceService(session)
        self._reference = ReferenceDataService(session, self.clock)

    def create_agreement(
        self,
        vendor_id: UUID,
        category_id: UUID,
        title: str,
        start_date: date | str,
        end_date: date | str,
        payment_terms: str | None,
        items: Sequence[AgreementLineSpec | Mapping[str, Any]],
        created_by: UUID,
    ) -> Agreement:
        """
        Create an agreement in ``pending_vendor``.

        ``items`` may be AgreementLineSpec instances or raw mappings
        (``itemName``/``unitPrice`` or snake_case); raw quantities parse as
        integers and prices as Decimal.
        """
        title = require_text(title, "title")
        start = parse_date(start_date, "start_date")
        end = parse_date(end_date, "end_date")
        if end <= start:
            raise ValidationError("end_date must be after start_date", field="end_date")
        if not items:
            raise ValidationError("agreement must have at least one item", field="items")
        lines = [
            item if isinstance(item, AgreementLineSpec) else AgreementLineSpec.from_raw(item)
            for item in items
        ]

        self._reference.get_vendor(vendor_id)
        self._reference.get_category(category_id)
        self._reference.get_user(created_by)

        now = self.clock.now()
        agreement_id = self._sequences.next_code(
            AGREEMENT_CODE_PREFIX, now.year, AGREEMENT_CODE_WIDTH,
        )
        total_value = sum((line.subtotal for line in lines), Decimal("0"))

        agreement = AgreementModel(
            id=agreement_id,
            vendor_id=vendor_id,
            category_id=category_id,
            title=title,
            start_date=start,
            end_date=end,
            payment_terms=payment_terms,
            total_value=total_value,
            status=AgreementStatus.PENDING_VENDOR.value,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        agreement.items = [
            AgreementItemModel(
                position=position,
                item_name=line.item_name,
                specifications=line.specifications,
                quantity=line.quantity,
                unit_price=line.unit_price,
                subtotal=line.subtotal,
            )
            for position, line in enumerate(lines, start=1)
        ]
        self.session.add(agreement)
        self.session.flush()

        with LogContext.bind(actor_id=str(created_by), target_id=agreement_id):
            logger.info(
                "agreement_created",
                extra={
                    "agreement_id": agreement_id,
                    "item_count": len(lines),
                    "total_value": str(total_value),
                },
            )
        return agreement.to_dto()

    def get_agreement(self, agreement_id: str) -> Agreement:
        agreement = self.session.get(AgreementModel, agreement_id)
        if agreement is None:
            raise AgreementNotFoundError(agreement_id)
        return agreement.to_dto()

    def list_agreements(
        self, status: AgreementStatus | str | None = None,
    ) -> list[Agreement]:
        """All agreements, newest first (ties broken by code, descending)."""
        query = select(AgreementModel).order_by(
            AgreementModel.created_at.desc(), AgreementModel.id.desc(),
        )
        if status is not None:
            query = query.where(
                AgreementModel.status == AgreementStatus.parse(status, "status").value
            )
        return [row.to_dto() for row in self.session.execute(query).scalars()]
