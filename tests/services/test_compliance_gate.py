"""
Tests for InvoiceComplianceGate.

The gate is diagnostic: it resolves the agreement and the category limit,
reports the four checks, and persists nothing.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from procurement_kernel.domain.compliance import CompliancePolicy
from procurement_kernel.domain.lifecycle import ReceiptStatus
from procurement_kernel.exceptions import AgreementNotFoundError, ValidationError
from procurement_kernel.models.approval_log import ApprovalLogModel
from procurement_kernel.models.receipt import ReceiptModel
from procurement_kernel.services.compliance_gate import InvoiceComplianceGate


class TestEvaluate:

    def test_within_tolerance_passes(self, compliance_gate, active_agreement, make_draft):
        verdict = compliance_gate.evaluate(active_agreement.id, make_draft())

        assert verdict.all_passed
        assert not verdict.needs_cfo
        assert verdict.initial_status is ReceiptStatus.VERIFIED
        assert verdict.invoice_total == Decimal("12000000")
        assert verdict.agreement_total == Decimal("10000000")
        assert verdict.applicable_limit == Decimal("50000000")

    def test_price_mismatch_escalates(self, compliance_gate, active_agreement, make_draft):
        verdict = compliance_gate.evaluate(
            active_agreement.id, make_draft(total=Decimal("20000000")),
        )

        assert verdict.needs_cfo
        assert verdict.escalation_reasons == ("price_match",)
        assert verdict.initial_status is ReceiptStatus.PENDING_APPROVAL
        assert "difference 10000000" in verdict.price_match.message

    def test_accepts_raw_mapping(self, compliance_gate, active_agreement):
        verdict = compliance_gate.evaluate(active_agreement.id, {
            "vendorName": "PT Sumber Makmur",
            "invoiceNumber": "INV-RAW",
            "date": "2025-03-01",
            "items": [{"description": "A4 Paper", "quantity": 10, "unitPrice": "1000000"}],
        })
        assert verdict.all_passed

    def test_malformed_mapping_raises(self, compliance_gate, active_agreement):
        with pytest.raises(ValidationError) as exc_info:
            compliance_gate.evaluate(active_agreement.id, {"vendorName": "x", "items": "A4 Paper"})
        assert exc_info.value.field == "items"

    def test_unknown_agreement(self, compliance_gate, make_draft):
        with pytest.raises(AgreementNotFoundError):
            compliance_gate.evaluate("AGR-2099-999", make_draft())

    def test_outside_period_is_advisory(self, compliance_gate, active_agreement, make_draft):
        verdict = compliance_gate.evaluate(
            active_agreement.id, make_draft(receipt_date=date(2026, 2, 1)),
        )
        assert not verdict.contract_period.valid
        assert not verdict.needs_cfo

    def test_strict_policy_escalates_period(
        self, session, settings, active_agreement, make_draft,
    ):
        gate = InvoiceComplianceGate(
            session,
            CompliancePolicy(escalate_on_any_failed_check=True),
            settings.default_daily_limit,
        )
        verdict = gate.evaluate(active_agreement.id, make_draft(receipt_date=date(2026, 2, 1)))
        assert verdict.escalation_reasons == ("contract_period",)

    def test_uses_category_limit(
        self, compliance_gate, processor, active_agreement, category, cfo_user, make_draft,
    ):
        processor.update_daily_limit(category.id, "11000000", cfo_user.id)

        verdict = compliance_gate.evaluate(active_agreement.id, make_draft())
        assert verdict.applicable_limit == Decimal("11000000")
        assert verdict.escalation_reasons == ("daily_limit",)

    def test_persists_nothing(self, session, compliance_gate, active_agreement, make_draft):
        receipts_before = session.scalar(select(func.count()).select_from(ReceiptModel))
        logs_before = session.scalar(select(func.count()).select_from(ApprovalLogModel))

        compliance_gate.evaluate(active_agreement.id, make_draft(total=Decimal("90000000")))

        assert session.scalar(select(func.count()).select_from(ReceiptModel)) == receipts_before
        assert session.scalar(select(func.count()).select_from(ApprovalLogModel)) == logs_before

    def test_logs_failed_checks(self, compliance_gate, active_agreement, make_draft, captured_logs):
        compliance_gate.evaluate(active_agreement.id, make_draft(total=Decimal("60000000")))

        record = next(r for r in captured_logs() if r["message"] == "compliance_evaluated")
        assert record["needs_cfo"] is True
        assert record["failed_checks"] == ["price_match", "daily_limit"]
