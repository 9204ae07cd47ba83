"""
Invoice compliance rules (``procurement_kernel.domain.compliance``).

Responsibility
--------------
Pure evaluation of a candidate invoice against its agreement and the
applicable category daily limit.  Produces a diagnostic verdict: every
check is computed and reported even when an earlier one fails.

Decision rule
-------------
``needs_cfo`` is raised by the price-consistency and daily-limit checks.
The quantity and contract-period checks are advisory: they are reported
but do not escalate on their own, unless the policy runs in strict mode
(``escalate_on_any_failed_check``), in which case any failed check
escalates.

Architecture position
---------------------
Kernel domain layer.  ZERO I/O; the service layer resolves the agreement
and limit and hands them in.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from procurement_kernel.domain.dtos import Agreement, InvoiceDraft
from procurement_kernel.domain.lifecycle import ReceiptStatus

DEFAULT_PRICE_TOLERANCE = Decimal("5000000")
DEFAULT_DAILY_LIMIT = Decimal("50000000")


@dataclass(frozen=True)
class CompliancePolicy:
    price_tolerance: Decimal = DEFAULT_PRICE_TOLERANCE
    escalate_on_any_failed_check: bool = False


@dataclass(frozen=True)
class CheckResult:
    name: str
    valid: bool
    message: str


@dataclass(frozen=True)
class ComplianceVerdict:
    """
    Structured outcome of the compliance gate.

    ``initial_status`` is the status a submission with this verdict is
    persisted with.
    """

    agreement_id: str
    price_match: CheckResult
    quantity: CheckResult
    contract_period: CheckResult
    daily_limit: CheckResult
    invoice_total: Decimal
    agreement_total: Decimal
    applicable_limit: Decimal
    needs_cfo: bool
    escalation_reasons: tuple[str, ...] = ()

    @property
    def checks(self) -> tuple[CheckResult, ...]:
        return (self.price_match, self.quantity, self.contract_period, self.daily_limit)

    @property
    def initial_status(self) -> ReceiptStatus:
        if self.needs_cfo:
            return ReceiptStatus.PENDING_APPROVAL
        return ReceiptStatus.VERIFIED

    @property
    def all_passed(self) -> bool:
        return all(check.valid for check in self.checks)


def check_price_consistency(
    invoice_total: Decimal, agreement_total: Decimal, tolerance: Decimal
) -> CheckResult:
    difference = abs(invoice_total - agreement_total)
    if difference > tolerance:
        return CheckResult(
            "price_match",
            False,
            f"Mismatch: agreement {agreement_total} vs invoice {invoice_total} "
            f"(difference {difference} exceeds tolerance {tolerance})",
        )
    return CheckResult("price_match", True, "Price match verified")


def check_quantity(total_quantity: int) -> CheckResult:
    if total_quantity > 0:
        return CheckResult("quantity", True, "Quantity available")
    return CheckResult("quantity", False, "Invalid quantity")


def check_contract_period(draft: InvoiceDraft, agreement: Agreement) -> CheckResult:
    # Whole-day bounds: start 00:00 through end 23:59:59 inclusive.
    if agreement.start_date <= draft.receipt_date <= agreement.end_date:
        return CheckResult("contract_period", True, "Contract period valid")
    return CheckResult(
        "contract_period",
        False,
        f"Date {draft.receipt_date} outside contract period "
        f"({agreement.start_date} - {agreement.end_date})",
    )


def check_daily_limit(invoice_total: Decimal, limit: Decimal) -> CheckResult:
    if invoice_total <= limit:
        return CheckResult("daily_limit", True, "Within daily limit")
    return CheckResult(
        "daily_limit",
        False,
        f"Exceeds daily limit: total {invoice_total} > limit {limit}",
    )


def evaluate_compliance(
    draft: InvoiceDraft,
    agreement: Agreement,
    daily_limit: Decimal,
    policy: CompliancePolicy | None = None,
) -> ComplianceVerdict:
    """Run all four checks in fixed order and derive the escalation flag."""
    policy = policy or CompliancePolicy()
    invoice_total = draft.grand_total

    price = check_price_consistency(invoice_total, agreement.total_value, policy.price_tolerance)
    quantity = check_quantity(draft.total_quantity)
    period = check_contract_period(draft, agreement)
    limit = check_daily_limit(invoice_total, daily_limit)

    escalating = [price, limit]
    if policy.escalate_on_any_failed_check:
        escalating = [price, quantity, period, limit]
    reasons = tuple(check.name for check in escalating if not check.valid)

    return ComplianceVerdict(
        agreement_id=agreement.id,
        price_match=price,
        quantity=quantity,
        contract_period=period,
        daily_limit=limit,
        invoice_total=invoice_total,
        agreement_total=agreement.total_value,
        applicable_limit=daily_limit,
        needs_cfo=bool(reasons),
        escalation_reasons=reasons,
    )
