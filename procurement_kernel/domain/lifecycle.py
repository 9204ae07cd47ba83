"""
Lifecycle domain types (``procurement_kernel.domain.lifecycle``).

Responsibility
--------------
Closed enumerations for every status, role and action string that crosses
the approval boundary, plus the pure transition function for agreements
and invoices.  ZERO I/O.

Agreement state machine
-----------------------
::

    pending_vendor --(vendor approve)--> pending_cfo --(cfo approve)--> active
         |                                    |
         +--(vendor|cfo reject)--> rejected <-+

``active`` and ``rejected`` are terminal.

Invoice (receipt) state machine
-------------------------------
::

    pending_approval --(cfo approve)--> verified
           |
           +--------(cfo reject)-----> rejected

``verified`` may also be the initial state when the compliance gate lets
an invoice auto-settle.  ``verified`` and ``rejected`` are terminal.
"""

from __future__ import annotations

from enum import Enum

from procurement_kernel.exceptions import (
    AuthorizationError,
    InvalidStateError,
    ValidationError,
)


class ClosedEnum(str, Enum):
    """String enum with boundary parsing that raises ValidationError."""

    @classmethod
    def parse(cls, value: "str | ClosedEnum", field: str | None = None):
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise ValidationError(
                f"Unknown {field or cls.__name__} '{value}' (expected one of: {allowed})",
                field=field,
            ) from None


class Role(ClosedEnum):
    FINANCE = "finance"
    VENDOR = "vendor"
    CFO = "cfo"
    AUDITOR = "auditor"


class TargetType(ClosedEnum):
    AGREEMENT = "agreement"
    INVOICE = "invoice"


class ApprovalAction(ClosedEnum):
    APPROVE = "approve"
    REJECT = "reject"

    @property
    def log_label(self) -> str:
        return self.value.upper()


LIMIT_UPDATE_ACTION = "LIMIT_UPDATE"


class AgreementStatus(ClosedEnum):
    PENDING_VENDOR = "pending_vendor"
    PENDING_CFO = "pending_cfo"
    ACTIVE = "active"
    REJECTED = "rejected"


class ReceiptStatus(ClosedEnum):
    PENDING_APPROVAL = "pending_approval"
    VERIFIED = "verified"
    REJECTED = "rejected"


class ProofStatus(ClosedEnum):
    VALID = "valid"
    EXPIRED = "expired"
    REVOKED = "revoked"


AGREEMENT_TRANSITIONS: dict[AgreementStatus, frozenset[AgreementStatus]] = {
    AgreementStatus.PENDING_VENDOR: frozenset({
        AgreementStatus.PENDING_CFO,
        AgreementStatus.REJECTED,
    }),
    AgreementStatus.PENDING_CFO: frozenset({
        AgreementStatus.ACTIVE,
        AgreementStatus.REJECTED,
    }),
    AgreementStatus.ACTIVE: frozenset(),
    AgreementStatus.REJECTED: frozenset(),
}

TERMINAL_AGREEMENT_STATUSES: frozenset[AgreementStatus] = frozenset({
    AgreementStatus.ACTIVE,
    AgreementStatus.REJECTED,
})

RECEIPT_TRANSITIONS: dict[ReceiptStatus, frozenset[ReceiptStatus]] = {
    ReceiptStatus.PENDING_APPROVAL: frozenset({
        ReceiptStatus.VERIFIED,
        ReceiptStatus.REJECTED,
    }),
    ReceiptStatus.VERIFIED: frozenset(),
    ReceiptStatus.REJECTED: frozenset(),
}

TERMINAL_RECEIPT_STATUSES: frozenset[ReceiptStatus] = frozenset({
    ReceiptStatus.VERIFIED,
    ReceiptStatus.REJECTED,
})

# Roles allowed to act on each target type.
AGREEMENT_ACTOR_ROLES: frozenset[Role] = frozenset({Role.VENDOR, Role.CFO})
INVOICE_ACTOR_ROLES: frozenset[Role] = frozenset({Role.CFO})

# The pending state each role is responsible for approving out of.
_AGREEMENT_APPROVAL_EDGES: dict[Role, tuple[AgreementStatus, AgreementStatus]] = {
    Role.VENDOR: (AgreementStatus.PENDING_VENDOR, AgreementStatus.PENDING_CFO),
    Role.CFO: (AgreementStatus.PENDING_CFO, AgreementStatus.ACTIVE),
}


def next_agreement_status(
    agreement_id: str,
    current: AgreementStatus,
    action: ApprovalAction,
    role: Role,
) -> AgreementStatus:
    """
    Resolve the target status of an agreement action.

    Raises:
        AuthorizationError: role may not act on agreements at all.
        InvalidStateError: current status is terminal, or the approve edge
            for this role does not start at the current status.
    """
    if role not in AGREEMENT_ACTOR_ROLES:
        raise AuthorizationError(role.value, f"{action.value} agreements")

    if current in TERMINAL_AGREEMENT_STATUSES:
        raise InvalidStateError("Agreement", agreement_id, current.value, action.value)

    if action is ApprovalAction.REJECT:
        target = AgreementStatus.REJECTED
    else:
        source, target = _AGREEMENT_APPROVAL_EDGES[role]
        if current is not source:
            raise InvalidStateError(
                "Agreement", agreement_id, current.value,
                f"{action.value} as {role.value}",
            )

    assert target in AGREEMENT_TRANSITIONS[current]
    return target


def next_receipt_status(
    receipt_id: str,
    current: ReceiptStatus,
    action: ApprovalAction,
    role: Role,
) -> ReceiptStatus:
    """
    Resolve the target status of a CFO invoice decision.

    Raises:
        AuthorizationError: role is not CFO.
        InvalidStateError: invoice is not awaiting approval.
    """
    if role not in INVOICE_ACTOR_ROLES:
        raise AuthorizationError(role.value, f"{action.value} invoices")

    if current in TERMINAL_RECEIPT_STATUSES:
        raise InvalidStateError("Receipt", receipt_id, current.value, action.value)

    if action is ApprovalAction.APPROVE:
        return ReceiptStatus.VERIFIED
    return ReceiptStatus.REJECTED
