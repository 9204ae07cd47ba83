"""
Tests for the invoice compliance rules (``procurement_kernel.domain.compliance``).

Covers:
- Price consistency within the absolute tolerance
- Daily-limit check against the category limit
- Advisory quantity and contract-period checks, and strict mode
- The escalation rule and the derived initial status
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import given
from hypothesis import strategies as st

from procurement_kernel.domain.compliance import (
    CompliancePolicy,
    check_contract_period,
    check_daily_limit,
    check_price_consistency,
    evaluate_compliance,
)
from procurement_kernel.domain.dtos import Agreement, InvoiceDraft, InvoiceLineSpec
from procurement_kernel.domain.lifecycle import AgreementStatus, ReceiptStatus

NOW = datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)


def _agreement(total_value=Decimal("10000000")) -> Agreement:
    return Agreement(
        id="AGR-2025-001",
        vendor_id=uuid4(),
        vendor_name="PT Sumber Makmur",
        category_id=uuid4(),
        category_name="Office Supplies",
        title="Office supplies 2025",
        start_date=date(2025, 1, 1),
        end_date=date(2025, 12, 31),
        payment_terms="Net 30",
        total_value=total_value,
        status=AgreementStatus.ACTIVE,
        created_by=uuid4(),
        created_at=NOW,
        updated_at=NOW,
    )


def _draft(total=Decimal("12000000"), *, quantity=1, receipt_date=date(2025, 1, 15)):
    """One-line draft whose grand total is ``total``.

    With ``quantity=0`` the whole total is carried as tax so the price and
    limit checks still see it.
    """
    if quantity == 0:
        line = InvoiceLineSpec("A4 Paper", 0, Decimal("1"))
        tax = total
    else:
        line = InvoiceLineSpec("A4 Paper", quantity, total / quantity)
        tax = Decimal("0")
    return InvoiceDraft(
        vendor_name="PT Sumber Makmur",
        invoice_number="INV-001",
        receipt_date=receipt_date,
        items=(line,),
        tax_amount=tax,
    )


# =========================================================================
# Individual checks
# =========================================================================


class TestPriceConsistency:

    def test_difference_at_tolerance_passes(self):
        result = check_price_consistency(
            Decimal("15000000"), Decimal("10000000"), Decimal("5000000"),
        )
        assert result.valid

    def test_difference_above_tolerance_fails(self):
        result = check_price_consistency(
            Decimal("15000000.01"), Decimal("10000000"), Decimal("5000000"),
        )
        assert not result.valid
        assert "Mismatch" in result.message

    def test_tolerance_is_symmetric(self):
        tolerance = Decimal("5000000")
        assert not check_price_consistency(Decimal("4000000"), Decimal("10000000"), tolerance).valid
        assert not check_price_consistency(Decimal("16000000"), Decimal("10000000"), tolerance).valid


class TestDailyLimit:

    def test_total_equal_to_limit_passes(self):
        assert check_daily_limit(Decimal("50000000"), Decimal("50000000")).valid

    def test_total_above_limit_fails(self):
        result = check_daily_limit(Decimal("50000001"), Decimal("50000000"))
        assert not result.valid
        assert "Exceeds daily limit" in result.message


class TestContractPeriod:

    @pytest.mark.parametrize("day", [date(2025, 1, 1), date(2025, 12, 31)])
    def test_boundary_days_are_inside(self, day):
        assert check_contract_period(_draft(receipt_date=day), _agreement()).valid

    def test_day_after_end_is_outside(self):
        result = check_contract_period(_draft(receipt_date=date(2026, 1, 1)), _agreement())
        assert not result.valid
        assert "outside contract period" in result.message


# =========================================================================
# Verdict
# =========================================================================


class TestEvaluateCompliance:

    def test_within_tolerance_and_limit_auto_verifies(self):
        """12M invoice vs 10M agreement, limit 50M: no escalation."""
        verdict = evaluate_compliance(_draft(), _agreement(), Decimal("50000000"))

        assert verdict.price_match.valid
        assert verdict.daily_limit.valid
        assert verdict.needs_cfo is False
        assert verdict.initial_status is ReceiptStatus.VERIFIED
        assert verdict.all_passed

    def test_limit_breach_escalates(self):
        """Same invoice against a 10M limit goes to the CFO."""
        verdict = evaluate_compliance(_draft(), _agreement(), Decimal("10000000"))

        assert verdict.price_match.valid
        assert not verdict.daily_limit.valid
        assert verdict.needs_cfo is True
        assert verdict.initial_status is ReceiptStatus.PENDING_APPROVAL
        assert verdict.escalation_reasons == ("daily_limit",)

    def test_price_mismatch_escalates(self):
        verdict = evaluate_compliance(_draft(Decimal("20000000")), _agreement(), Decimal("50000000"))
        assert verdict.needs_cfo
        assert verdict.escalation_reasons == ("price_match",)

    def test_all_checks_reported_when_price_fails(self):
        verdict = evaluate_compliance(
            _draft(Decimal("20000000"), quantity=0), _agreement(), Decimal("10000000"),
        )
        assert [c.name for c in verdict.checks] == [
            "price_match", "quantity", "contract_period", "daily_limit",
        ]
        assert not verdict.quantity.valid
        assert not verdict.daily_limit.valid

    def test_advisory_checks_do_not_escalate_by_default(self):
        """Zero quantity and out-of-period dates are reported only."""
        verdict = evaluate_compliance(
            _draft(quantity=0, receipt_date=date(2026, 3, 1)),
            _agreement(),
            Decimal("50000000"),
        )
        assert not verdict.quantity.valid
        assert not verdict.contract_period.valid
        assert verdict.needs_cfo is False
        assert verdict.initial_status is ReceiptStatus.VERIFIED

    def test_strict_policy_escalates_on_advisory_failure(self):
        policy = CompliancePolicy(escalate_on_any_failed_check=True)
        verdict = evaluate_compliance(
            _draft(receipt_date=date(2026, 3, 1)), _agreement(), Decimal("50000000"), policy,
        )
        assert verdict.needs_cfo is True
        assert verdict.escalation_reasons == ("contract_period",)

    def test_custom_tolerance(self):
        policy = CompliancePolicy(price_tolerance=Decimal("1000000"))
        verdict = evaluate_compliance(_draft(), _agreement(), Decimal("50000000"), policy)
        assert not verdict.price_match.valid
        assert verdict.needs_cfo

    def test_totals_recorded_on_verdict(self):
        verdict = evaluate_compliance(_draft(), _agreement(), Decimal("50000000"))
        assert verdict.invoice_total == Decimal("12000000")
        assert verdict.agreement_total == Decimal("10000000")
        assert verdict.applicable_limit == Decimal("50000000")
        assert verdict.agreement_id == "AGR-2025-001"


money = st.decimals(
    min_value=Decimal("0"), max_value=Decimal("100000000"), places=2,
    allow_nan=False, allow_infinity=False,
)


class TestEscalationProperty:

    @given(total=money, limit=money)
    def test_needs_cfo_matches_price_or_limit_failure(self, total, limit):
        verdict = evaluate_compliance(_draft(total), _agreement(), limit)
        expected = (
            abs(total - Decimal("10000000")) > Decimal("5000000") or total > limit
        )
        assert verdict.needs_cfo is expected
        expected_status = (
            ReceiptStatus.PENDING_APPROVAL if expected else ReceiptStatus.VERIFIED
        )
        assert verdict.initial_status is expected_status
