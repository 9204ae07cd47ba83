"""
ApprovalActionProcessor -- the single writer of approval status.

Responsibility:
    Applies role-gated approve/reject actions to agreements and invoices,
    upserts category daily limits, and appends exactly one ApprovalLog row
    for every mutation it makes.

Architecture position:
    Kernel > Services.  Pure transition rules live in
    ``domain.lifecycle``; this class adds locking, collaborator calls and
    the audit append.

Invariants enforced:
    - Mutate + audit are atomic: both run inside one savepoint, so a
      persisted status change always has its log row and vice versa.
    - The target row is locked (``SELECT ... FOR UPDATE``) before its
      status is read.  A second concurrent approval waits for the first
      and then sees a terminal state (InvalidStateError).
    - Invoice approval calls the ledger BEFORE anything is mutated; a
      ledger failure leaves the invoice ``pending_approval`` with no log.

Failure modes:
    - ValidationError: unknown target type, action or role; bad amount.
    - AgreementNotFoundError / ReceiptNotFoundError / CategoryNotFoundError
      / UserNotFoundError.
    - AuthorizationError: role may not perform the action.
    - InvalidStateError: terminal or incompatible current status.
    - DependencyError: ledger settlement failed or timed out.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from procurement_kernel.config import KernelSettings
from procurement_kernel.db.types import round_money
from procurement_kernel.domain.collaborators import LedgerGateway, SettlementRequest
from procurement_kernel.domain.dtos import (
    ActionResult,
    DailyLimitView,
    PendingQueue,
    SettlementRecord,
    parse_decimal,
)
from procurement_kernel.domain.lifecycle import (
    LIMIT_UPDATE_ACTION,
    AgreementStatus,
    ApprovalAction,
    ReceiptStatus,
    Role,
    TargetType,
    next_agreement_status,
    next_receipt_status,
)
from procurement_kernel.exceptions import (
    AgreementNotFoundError,
    AuthorizationError,
    ReceiptNotFoundError,
    ValidationError,
)
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.models.agreement import AgreementModel
from procurement_kernel.models.daily_limit import DailyLimitModel
from procurement_kernel.models.receipt import BlockchainRecordModel, ReceiptModel
from procurement_kernel.selectors.approval_queue_selector import ApprovalQueueSelector
from procurement_kernel.services.approval_audit import ApprovalAuditTrail
from procurement_kernel.services.base import BaseService
from procurement_kernel.services.daily_limit_registry import DailyLimitRegistry
from procurement_kernel.services.receipt_service import settle_on_ledger
from procurement_kernel.services.reference_data import ReferenceDataService

logger = get_logger("services.approval_processor")


class ApprovalActionProcessor(BaseService):
    """
    Contract:
        ``apply_action`` either persists (new status, one log row) or raises
        with neither persisted.

    Non-goals:
        - Does NOT call ``session.commit()``; wrap calls in session_scope().
        - Does NOT resolve the acting user implicitly.
    """

    def __init__(
        self,
        session,
        clock=None,
        *,
        settings: KernelSettings | None = None,
        ledger: LedgerGateway | None = None,
    ):
        super().__init__(session, clock)
        self.settings = settings or KernelSettings()
        self.ledger = ledger
        self._audit = ApprovalAuditTrail(session, self.clock)
        self._reference = ReferenceDataService(session, self.clock)
        self._limits = DailyLimitRegistry(session, self.settings.default_daily_limit)

    # -------------------------------------------------------------------------
    # Approval actions
    # -------------------------------------------------------------------------

    def apply_action(
        self,
        target_type: TargetType | str,
        target_id: str,
        action: ApprovalAction | str,
        role: Role | str,
        note: str | None,
        approver_id: UUID,
    ) -> ActionResult:
        target_type = TargetType.parse(target_type, "target_type")
        action = ApprovalAction.parse(action, "action")
        role = Role.parse(role, "role")
        self._reference.get_user(approver_id)

        with LogContext.bind(actor_id=str(approver_id), target_id=target_id):
            if target_type is TargetType.AGREEMENT:
                result = self._apply_to_agreement(target_id, action, role, note, approver_id)
            else:
                result = self._apply_to_invoice(target_id, action, role, note, approver_id)

            logger.info(
                "approval_action_applied",
                extra={
                    "target_type": target_type.value,
                    "action": action.value,
                    "role": role.value,
                    "from_status": result.previous_status,
                    "to_status": result.new_status,
                    "log_seq": result.log_entry.seq,
                },
            )
        return result

    def _apply_to_agreement(
        self,
        agreement_id: str,
        action: ApprovalAction,
        role: Role,
        note: str | None,
        approver_id: UUID,
    ) -> ActionResult:
        agreement = self.session.execute(
            select(AgreementModel)
            .where(AgreementModel.id == agreement_id)
            .with_for_update(of=AgreementModel)
            .execution_options(populate_existing=True)
        ).unique().scalar_one_or_none()
        if agreement is None:
            raise AgreementNotFoundError(agreement_id)

        current = AgreementStatus(agreement.status)
        target = next_agreement_status(agreement_id, current, action, role)

        with self.session.begin_nested():
            agreement.status = target.value
            agreement.updated_at = self.clock.now()
            log = self._audit.append(
                target_type=TargetType.AGREEMENT,
                target_id=agreement_id,
                approver_id=approver_id,
                role=role,
                action=action.log_label,
                notes=note,
            )

        return ActionResult(
            target_type=TargetType.AGREEMENT,
            target_id=agreement_id,
            previous_status=current.value,
            new_status=target.value,
            log_entry=log.to_dto(),
        )

    def _apply_to_invoice(
        self,
        receipt_id: str,
        action: ApprovalAction,
        role: Role,
        note: str | None,
        approver_id: UUID,
    ) -> ActionResult:
        receipt = self.session.execute(
            select(ReceiptModel)
            .where(ReceiptModel.id == receipt_id)
            .with_for_update(of=ReceiptModel)
            .execution_options(populate_existing=True)
        ).unique().scalar_one_or_none()
        if receipt is None:
            raise ReceiptNotFoundError(receipt_id)

        current = ReceiptStatus(receipt.status)
        target = next_receipt_status(receipt_id, current, action, role)

        settlement = None
        if target is ReceiptStatus.VERIFIED:
            # Ledger first: a failure here must leave nothing behind.
            settlement = settle_on_ledger(
                self.ledger,
                SettlementRequest(receipt_id, receipt.invoice_number, receipt.total_amount),
                self.settings.collaborator_timeout_seconds,
            )

        with self.session.begin_nested():
            now = self.clock.now()
            receipt.status = target.value
            receipt.updated_at = now
            if settlement is not None:
                receipt.blockchain_record = BlockchainRecordModel(
                    tx_hash=settlement.transaction_id,
                    block_number=settlement.block_reference,
                    network=settlement.network_name,
                    created_at=now,
                )
            log = self._audit.append(
                target_type=TargetType.INVOICE,
                target_id=receipt_id,
                approver_id=approver_id,
                role=role,
                action=action.log_label,
                notes=note,
            )

        return ActionResult(
            target_type=TargetType.INVOICE,
            target_id=receipt_id,
            previous_status=current.value,
            new_status=target.value,
            log_entry=log.to_dto(),
            settlement=(
                None if settlement is None
                else SettlementRecord(
                    tx_hash=settlement.transaction_id,
                    block_number=settlement.block_reference,
                    network=settlement.network_name,
                )
            ),
        )

    # -------------------------------------------------------------------------
    # Daily limits
    # -------------------------------------------------------------------------

    def update_daily_limit(
        self,
        category_id: UUID,
        new_amount: Decimal | str | int,
        approver_id: UUID,
        role: Role | str = Role.CFO,
    ) -> DailyLimitView:
        """
        Upsert the category's daily limit and log the change.

        The log note records the previously effective limit (explicit or
        default) and the new one.
        """
        role = Role.parse(role, "role")
        if role is not Role.CFO:
            raise AuthorizationError(role.value, "update daily limits")
        amount = parse_decimal(new_amount, "limit_amount")
        if amount <= 0:
            raise ValidationError("limit_amount must be positive", field="limit_amount")
        self._reference.get_user(approver_id)
        old_view = self._limits.get_view(category_id)

        row = self.session.execute(
            select(DailyLimitModel)
            .where(DailyLimitModel.category_id == category_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        old_amount = row.limit_amount if row is not None else old_view.limit_amount

        with self.session.begin_nested():
            now = self.clock.now()
            if row is None:
                row = DailyLimitModel(
                    category_id=category_id,
                    limit_amount=amount,
                    updated_by=approver_id,
                    updated_at=now,
                )
                self.session.add(row)
            else:
                row.limit_amount = amount
                row.updated_by = approver_id
                row.updated_at = now
            self.session.flush()
            log = self._audit.append(
                target_type=None,
                target_id=None,
                approver_id=approver_id,
                role=role,
                action=LIMIT_UPDATE_ACTION,
                notes=f"Limit changed from {round_money(old_amount)} to {round_money(amount)}",
            )

        with LogContext.bind(actor_id=str(approver_id)):
            logger.info(
                "daily_limit_updated",
                extra={
                    "category_id": str(category_id),
                    "old_limit": str(round_money(old_amount)),
                    "new_limit": str(round_money(amount)),
                    "log_seq": log.seq,
                },
            )
        return self._limits.get_view(category_id)

    # -------------------------------------------------------------------------
    # Queues
    # -------------------------------------------------------------------------

    def pending_queue(self, role: Role | str) -> PendingQueue:
        return ApprovalQueueSelector(self.session).pending_for_role(role)
