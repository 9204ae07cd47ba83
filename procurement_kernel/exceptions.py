"""
Typed exception hierarchy for the procurement kernel.

Every failure the kernel can surface has its own class with a static,
machine-readable ``code`` and structured attributes, so callers catch by
type and report by code instead of parsing messages.

    ProcurementKernelError (base)
    |
    +-- ValidationError
    +-- NotFoundError
    |   +-- AgreementNotFoundError
    |   +-- ReceiptNotFoundError
    |   +-- VendorNotFoundError
    |   +-- CategoryNotFoundError
    |   +-- UserNotFoundError
    |   +-- ProofNotFoundError
    +-- AuthorizationError
    +-- InvalidStateError
    +-- ClaimNotSatisfiedError
    +-- DependencyError
    +-- ImmutabilityViolationError
    +-- ApprovalLogChainBrokenError

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Input           | VALIDATION_ERROR            | Malformed or incomplete input (not retried)
Lookup          | NOT_FOUND (and subclasses)  | Unknown identifier
Authorization   | AUTHORIZATION_ERROR         | Role not permitted for the transition
State           | INVALID_STATE               | Transition from terminal/incompatible state
Disclosure      | CLAIM_NOT_SATISFIED         | Range-proof predicate is false
Collaborators   | DEPENDENCY_ERROR            | Ledger / document store / extraction failed
Integrity       | IMMUTABILITY_VIOLATION      | Frozen or append-only record modified
                | APPROVAL_LOG_CHAIN_BROKEN   | Hash chain validation failed

ClaimNotSatisfiedError deliberately carries only the claim (predicate and
bounds), never the aggregate that failed it.
"""

from __future__ import annotations

from decimal import Decimal


class ProcurementKernelError(Exception):
    """
    Base exception for all procurement kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PROCUREMENT_KERNEL_ERROR"


class ValidationError(ProcurementKernelError):
    """Caller supplied malformed or incomplete input."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


# Lookup failures


class NotFoundError(ProcurementKernelError):
    """An identifier did not resolve to a stored record."""

    code: str = "NOT_FOUND"
    entity_type: str = "Entity"

    def __init__(self, entity_id: str):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class AgreementNotFoundError(NotFoundError):
    code: str = "AGREEMENT_NOT_FOUND"
    entity_type = "Agreement"


class ReceiptNotFoundError(NotFoundError):
    code: str = "RECEIPT_NOT_FOUND"
    entity_type = "Receipt"


class VendorNotFoundError(NotFoundError):
    code: str = "VENDOR_NOT_FOUND"
    entity_type = "Vendor"


class CategoryNotFoundError(NotFoundError):
    code: str = "CATEGORY_NOT_FOUND"
    entity_type = "Category"


class UserNotFoundError(NotFoundError):
    code: str = "USER_NOT_FOUND"
    entity_type = "User"


class ProofNotFoundError(NotFoundError):
    code: str = "PROOF_NOT_FOUND"
    entity_type = "RangeProof"


# Workflow failures


class AuthorizationError(ProcurementKernelError):
    """The acting role may not perform the requested transition."""

    code: str = "AUTHORIZATION_ERROR"

    def __init__(self, role: str, operation: str):
        self.role = role
        self.operation = operation
        super().__init__(f"Role '{role}' is not permitted to {operation}")


class InvalidStateError(ProcurementKernelError):
    """
    Transition attempted from a terminal or incompatible state.

    Also raised for the loser of a double-approval race: once the winner
    commits, the target is terminal and the second action is refused.
    """

    code: str = "INVALID_STATE"

    def __init__(self, entity_type: str, entity_id: str, current_status: str, attempted: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.current_status = current_status
        self.attempted = attempted
        super().__init__(
            f"{entity_type} {entity_id} is '{current_status}'; "
            f"cannot {attempted}"
        )


class ClaimNotSatisfiedError(ProcurementKernelError):
    """The range-disclosure predicate evaluated false for the window."""

    code: str = "CLAIM_NOT_SATISFIED"

    def __init__(
        self,
        proof_type: str,
        range_min: Decimal | None,
        range_max: Decimal | None,
    ):
        self.proof_type = proof_type
        self.range_min = range_min
        self.range_max = range_max
        super().__init__(
            "Proof generation failed: actual spending does not satisfy "
            f"the claim ({proof_type}, min={range_min}, max={range_max})"
        )


class DependencyError(ProcurementKernelError):
    """An external collaborator failed or timed out."""

    code: str = "DEPENDENCY_ERROR"

    def __init__(self, dependency: str, reason: str):
        self.dependency = dependency
        self.reason = reason
        super().__init__(f"{dependency} call failed: {reason}")


# Integrity failures


class ImmutabilityViolationError(ProcurementKernelError):
    """Attempted to modify or delete a frozen or append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


class ApprovalLogChainBrokenError(ProcurementKernelError):
    """Approval log hash chain validation failed."""

    code: str = "APPROVAL_LOG_CHAIN_BROKEN"

    def __init__(self, log_id: str, expected_hash: str, actual_hash: str):
        self.log_id = str(log_id)
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Approval log chain broken at {log_id}: "
            f"expected {expected_hash}, got {actual_hash}"
        )
