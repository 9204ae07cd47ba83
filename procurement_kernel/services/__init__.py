"""
Write-side services.  Every service takes the caller's Session and only
flushes; wrap calls in ``db.engine.session_scope()`` to commit.
"""

from procurement_kernel.services.agreement_service import AgreementLifecycleManager
from procurement_kernel.services.approval_audit import ApprovalAuditTrail
from procurement_kernel.services.approval_processor import ApprovalActionProcessor
from procurement_kernel.services.compliance_gate import InvoiceComplianceGate
from procurement_kernel.services.daily_limit_registry import DailyLimitRegistry
from procurement_kernel.services.gateways import (
    SimulatedDocumentExtractor,
    SimulatedDocumentStore,
    SimulatedLedgerGateway,
    call_with_timeout,
)
from procurement_kernel.services.range_proof_service import RangeProofService
from procurement_kernel.services.receipt_service import InvoiceSubmission, ReceiptService
from procurement_kernel.services.reference_data import ReferenceDataService
from procurement_kernel.services.sequence_service import SequenceService

__all__ = [
    "AgreementLifecycleManager",
    "ApprovalActionProcessor",
    "ApprovalAuditTrail",
    "DailyLimitRegistry",
    "InvoiceComplianceGate",
    "InvoiceSubmission",
    "RangeProofService",
    "ReceiptService",
    "ReferenceDataService",
    "SequenceService",
    "SimulatedDocumentExtractor",
    "SimulatedDocumentStore",
    "SimulatedLedgerGateway",
    "call_with_timeout",
]
