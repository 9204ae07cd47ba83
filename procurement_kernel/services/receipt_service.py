"""
ReceiptService -- invoice intake against an active agreement.

Responsibility:
    Runs the compliance gate on a submitted invoice and persists the
    receipt with the initial status the verdict dictates.  Auto-verified
    receipts are settled on the ledger at submission; an optional source
    document is stored and referenced by content id.

Invariants enforced:
    - Only ``active`` agreements accept invoices.
    - A receipt is ``verified`` only together with its settlement record.
    - Collaborator calls happen inside a savepoint before the receipt rows
      are written.  Any failure rolls the savepoint back, so neither the
      receipt nor its ``RCP`` sequence number survives.

Failure modes:
    - ValidationError: malformed draft, or bad paging arguments.
    - AgreementNotFoundError / UserNotFoundError / ReceiptNotFoundError.
    - InvalidStateError: agreement is not active.
    - DependencyError: ledger, document store or extractor failed.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import func, select

from procurement_kernel.config import KernelSettings
from procurement_kernel.domain.collaborators import (
    DocumentExtractor,
    DocumentStore,
    LedgerGateway,
    SettlementReference,
    SettlementRequest,
)
from procurement_kernel.domain.compliance import ComplianceVerdict
from procurement_kernel.domain.dtos import InvoiceDraft, Receipt, ReceiptPage, first_given
from procurement_kernel.domain.lifecycle import AgreementStatus, ReceiptStatus
from procurement_kernel.exceptions import (
    DependencyError,
    InvalidStateError,
    ReceiptNotFoundError,
    ValidationError,
)
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.models.receipt import (
    BlockchainRecordModel,
    IpfsRecordModel,
    ReceiptItemModel,
    ReceiptModel,
)
from procurement_kernel.services.agreement_service import AgreementLifecycleManager
from procurement_kernel.services.base import BaseService
from procurement_kernel.services.compliance_gate import InvoiceComplianceGate
from procurement_kernel.services.gateways import call_with_timeout
from procurement_kernel.services.reference_data import ReferenceDataService
from procurement_kernel.services.sequence_service import SequenceService

logger = get_logger("services.receipt")

RECEIPT_CODE_PREFIX = "RCP"
RECEIPT_CODE_WIDTH = 4
DEFAULT_PAGE_SIZE = 5
DEFAULT_DOCUMENT_TYPE = "image/jpeg"


@dataclass(frozen=True)
class InvoiceSubmission:
    receipt: Receipt
    verdict: ComplianceVerdict


def settle_on_ledger(
    ledger: LedgerGateway | None,
    request: SettlementRequest,
    timeout: float,
) -> SettlementReference:
    """Time-bounded ledger settlement shared by intake and CFO approval."""
    if ledger is None:
        raise DependencyError("ledger", "no ledger gateway configured")
    return call_with_timeout("ledger", ledger.settle, request, timeout=timeout)


class ReceiptService(BaseService):

    def __init__(
        self,
        session,
        clock=None,
        *,
        settings: KernelSettings | None = None,
        ledger: LedgerGateway | None = None,
        document_store: DocumentStore | None = None,
        extractor: DocumentExtractor | None = None,
    ):
        super().__init__(session, clock)
        self.settings = settings or KernelSettings()
        self.ledger = ledger
        self.document_store = document_store
        self.extractor = extractor
        self._sequences = SequenceService(session)
        self._agreements = AgreementLifecycleManager(session, self.clock)
        self._reference = ReferenceDataService(session, self.clock)
        self._gate = InvoiceComplianceGate(
            session,
            self.settings.compliance_policy,
            self.settings.default_daily_limit,
        )

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    def submit_invoice(
        self,
        agreement_id: str,
        draft: InvoiceDraft | Mapping[str, Any],
        actor_id: UUID,
        document: bytes | None = None,
        document_type: str = DEFAULT_DOCUMENT_TYPE,
    ) -> InvoiceSubmission:
        """
        Evaluate and persist an invoice.

        Returns the stored receipt together with the verdict that set its
        initial status.
        """
        if not isinstance(draft, InvoiceDraft):
            draft = InvoiceDraft.from_mapping(draft)
        self._reference.get_user(actor_id)

        agreement = self._agreements.get_agreement(agreement_id)
        if agreement.status is not AgreementStatus.ACTIVE:
            raise InvalidStateError(
                "Agreement", agreement_id, agreement.status.value, "accept invoices",
            )

        verdict = self._gate.evaluate_against(agreement, draft)
        status = verdict.initial_status
        timeout = self.settings.collaborator_timeout_seconds

        with LogContext.bind(actor_id=str(actor_id)):
            with self.session.begin_nested():
                now = self.clock.now()
                receipt_id = self._sequences.next_code(
                    RECEIPT_CODE_PREFIX, now.year, RECEIPT_CODE_WIDTH,
                )

                cid = None
                if document is not None:
                    if self.document_store is None:
                        raise DependencyError("document_store", "no document store configured")
                    cid = call_with_timeout(
                        "document_store",
                        self.document_store.put,
                        document,
                        document_type,
                        timeout=timeout,
                    )

                settlement = None
                if status is ReceiptStatus.VERIFIED:
                    settlement = settle_on_ledger(
                        self.ledger,
                        SettlementRequest(receipt_id, draft.invoice_number, draft.grand_total),
                        timeout,
                    )

                receipt = ReceiptModel(
                    id=receipt_id,
                    agreement_id=agreement.id,
                    vendor_name=draft.vendor_name,
                    invoice_number=draft.invoice_number,
                    receipt_date=draft.receipt_date,
                    category_id=agreement.category_id,
                    subtotal=draft.subtotal,
                    tax_amount=draft.tax_amount,
                    total_amount=draft.grand_total,
                    status=status.value,
                    confidence_score=draft.confidence_score,
                    created_by=actor_id,
                    created_at=now,
                    updated_at=now,
                )
                receipt.items = [
                    ReceiptItemModel(
                        sequence=sequence,
                        description=line.description,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        total=line.total,
                    )
                    for sequence, line in enumerate(draft.items, start=1)
                ]
                if settlement is not None:
                    receipt.blockchain_record = BlockchainRecordModel(
                        tx_hash=settlement.transaction_id,
                        block_number=settlement.block_reference,
                        network=settlement.network_name,
                        created_at=now,
                    )
                if cid is not None:
                    receipt.ipfs_record = IpfsRecordModel(
                        cid=cid, file_type=document_type, created_at=now,
                    )
                self.session.add(receipt)
                self.session.flush()

            logger.info(
                "receipt_submitted",
                extra={
                    "receipt_id": receipt_id,
                    "agreement_id": agreement.id,
                    "status": status.value,
                    "needs_cfo": verdict.needs_cfo,
                    "escalation_reasons": list(verdict.escalation_reasons),
                },
            )
        return InvoiceSubmission(receipt=receipt.to_dto(), verdict=verdict)

    # -------------------------------------------------------------------------
    # Extraction
    # -------------------------------------------------------------------------

    def draft_from_document(self, content: bytes, content_type: str) -> InvoiceDraft:
        """
        Turn an uploaded document into a draft via the extraction service.

        The extraction output is untrusted and goes through the same parsing
        as manual entry.  Items missing a quantity default to 1 and items
        missing a unit price default to 0.
        """
        if self.extractor is None:
            raise DependencyError("document_extractor", "no extractor configured")
        raw = call_with_timeout(
            "document_extractor",
            self.extractor.extract,
            content,
            content_type,
            timeout=self.settings.collaborator_timeout_seconds,
        )
        if not isinstance(raw, Mapping):
            raise ValidationError("extraction result must be a mapping", field="document")

        normalized = dict(raw)
        items = raw.get("items") or ()
        if isinstance(items, list):
            normalized["items"] = [_with_item_defaults(item) for item in items]
        return InvoiceDraft.from_mapping(normalized)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_receipt(self, receipt_id: str) -> Receipt:
        receipt = self.session.get(ReceiptModel, receipt_id)
        if receipt is None:
            raise ReceiptNotFoundError(receipt_id)
        return receipt.to_dto()

    def list_receipts(
        self,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        status: ReceiptStatus | str | None = None,
    ) -> ReceiptPage:
        """Newest-first page of receipts plus the total count."""
        if page < 1:
            raise ValidationError("page must be >= 1", field="page")
        if limit < 1:
            raise ValidationError("limit must be >= 1", field="limit")

        query = select(ReceiptModel)
        count_query = select(func.count()).select_from(ReceiptModel)
        if status is not None:
            value = ReceiptStatus.parse(status, "status").value
            query = query.where(ReceiptModel.status == value)
            count_query = count_query.where(ReceiptModel.status == value)

        total = self.session.execute(count_query).scalar_one()
        rows = self.session.execute(
            query.order_by(ReceiptModel.created_at.desc(), ReceiptModel.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars()
        return ReceiptPage(
            data=tuple(row.to_dto() for row in rows),
            total=total,
            page=page,
            limit=limit,
        )


def _with_item_defaults(item: Any) -> Any:
    if not isinstance(item, Mapping):
        return item
    normalized = dict(item)
    if normalized.get("quantity") in (None, ""):
        normalized["quantity"] = 1
    price = first_given(normalized, "unit_price", "unitPrice")
    normalized.pop("unitPrice", None)
    normalized["unit_price"] = 0 if price in (None, "") else price
    return normalized
