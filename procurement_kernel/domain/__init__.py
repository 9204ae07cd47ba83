"""
Pure domain layer: lifecycle enums, DTOs, compliance rules, range claims,
clock and collaborator protocols.  No database or network access.
"""

from procurement_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from procurement_kernel.domain.compliance import (
    CheckResult,
    CompliancePolicy,
    ComplianceVerdict,
    evaluate_compliance,
)
from procurement_kernel.domain.lifecycle import (
    AgreementStatus,
    ApprovalAction,
    ProofStatus,
    ReceiptStatus,
    Role,
    TargetType,
)
from procurement_kernel.domain.range_claim import ProofPredicate, RangeClaim

__all__ = [
    "AgreementStatus",
    "ApprovalAction",
    "CheckResult",
    "Clock",
    "CompliancePolicy",
    "ComplianceVerdict",
    "DeterministicClock",
    "ProofPredicate",
    "ProofStatus",
    "RangeClaim",
    "ReceiptStatus",
    "Role",
    "SystemClock",
    "TargetType",
    "evaluate_compliance",
]
