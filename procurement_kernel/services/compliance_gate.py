"""
InvoiceComplianceGate -- diagnostic verdict for a candidate invoice.

Resolves the target agreement and the category's effective daily limit,
then hands both to the pure rules in ``domain.compliance``.  The gate never
mutates state and never raises for a failed business check; it reports.

Failure modes:
    - AgreementNotFoundError if the agreement id does not resolve.
    - ValidationError if a raw draft mapping is malformed.
"""

from collections.abc import Mapping
from typing import Any

from sqlalchemy.orm import Session

from procurement_kernel.domain.compliance import (
    CompliancePolicy,
    ComplianceVerdict,
    DEFAULT_DAILY_LIMIT,
    evaluate_compliance,
)
from procurement_kernel.domain.dtos import Agreement, InvoiceDraft
from procurement_kernel.logging_config import get_logger
from procurement_kernel.services.agreement_service import AgreementLifecycleManager
from procurement_kernel.services.daily_limit_registry import DailyLimitRegistry

logger = get_logger("services.compliance_gate")


class InvoiceComplianceGate:

    def __init__(
        self,
        session: Session,
        policy: CompliancePolicy | None = None,
        default_daily_limit=DEFAULT_DAILY_LIMIT,
    ):
        self.session = session
        self.policy = policy or CompliancePolicy()
        self._agreements = AgreementLifecycleManager(session)
        self._limits = DailyLimitRegistry(session, default_daily_limit)

    def evaluate(
        self,
        agreement_id: str,
        draft: InvoiceDraft | Mapping[str, Any],
    ) -> ComplianceVerdict:
        if not isinstance(draft, InvoiceDraft):
            draft = InvoiceDraft.from_mapping(draft)
        agreement = self._agreements.get_agreement(agreement_id)
        return self.evaluate_against(agreement, draft)

    def evaluate_against(self, agreement: Agreement, draft: InvoiceDraft) -> ComplianceVerdict:
        """Evaluate against an agreement the caller already resolved."""
        limit = self._limits.effective_limit(agreement.category_id)
        verdict = evaluate_compliance(draft, agreement, limit, self.policy)
        logger.info(
            "compliance_evaluated",
            extra={
                "agreement_id": agreement.id,
                "needs_cfo": verdict.needs_cfo,
                "failed_checks": [c.name for c in verdict.checks if not c.valid],
            },
        )
        return verdict
