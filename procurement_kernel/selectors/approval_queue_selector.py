"""
ApprovalQueueSelector -- what each role has waiting for it.

    vendor  -> agreements in pending_vendor
    cfo     -> agreements in pending_cfo, invoices in pending_approval
    others  -> nothing

Oldest first, so queues are worked in arrival order.
"""

from sqlalchemy import select

from procurement_kernel.domain.dtos import PendingQueue
from procurement_kernel.domain.lifecycle import AgreementStatus, ReceiptStatus, Role
from procurement_kernel.models.agreement import AgreementModel
from procurement_kernel.models.receipt import ReceiptModel
from procurement_kernel.selectors.base import BaseSelector


class ApprovalQueueSelector(BaseSelector):

    def _agreements_in(self, status: AgreementStatus):
        rows = self.session.execute(
            select(AgreementModel)
            .where(AgreementModel.status == status.value)
            .order_by(AgreementModel.created_at, AgreementModel.id)
        ).unique().scalars()
        return tuple(row.to_dto() for row in rows)

    def _pending_invoices(self):
        rows = self.session.execute(
            select(ReceiptModel)
            .where(ReceiptModel.status == ReceiptStatus.PENDING_APPROVAL.value)
            .order_by(ReceiptModel.created_at, ReceiptModel.id)
        ).unique().scalars()
        return tuple(row.to_dto() for row in rows)

    def pending_for_role(self, role: Role | str) -> PendingQueue:
        role = Role.parse(role, "role")
        if role is Role.VENDOR:
            return PendingQueue(role, agreements=self._agreements_in(AgreementStatus.PENDING_VENDOR))
        if role is Role.CFO:
            return PendingQueue(
                role,
                agreements=self._agreements_in(AgreementStatus.PENDING_CFO),
                invoices=self._pending_invoices(),
            )
        return PendingQueue(role)
