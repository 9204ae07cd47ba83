"""
Data Transfer Objects for the procurement kernel.

Frozen dataclasses that cross the service boundary.  ORM models convert
into these via ``to_dto()``; services never hand out live ORM instances.

Input specs (``AgreementLineSpec``, ``InvoiceLineSpec``, ``InvoiceDraft``,
``DateRange``) parse loosely typed caller data at construction time via
``from_raw``/``from_mapping`` and raise ``ValidationError`` on anything
malformed.  Manually keyed data and extraction output go through the same
path.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from procurement_kernel.domain.lifecycle import (
    AgreementStatus,
    ProofStatus,
    ReceiptStatus,
    Role,
    TargetType,
)
from procurement_kernel.exceptions import ValidationError


# =============================================================================
# Parsing helpers
# =============================================================================


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """Parse a money value.  Floats go through str() to avoid binary noise."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field_name} is required", field=field_name)
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(
                f"{field_name} must be a number, got {value!r}", field=field_name
            ) from None
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be finite", field=field_name)
    return result


def parse_quantity(value: Any, field_name: str) -> int:
    """Parse an integral quantity; fractional quantities are rejected."""
    amount = parse_decimal(value, field_name)
    if amount != amount.to_integral_value():
        raise ValidationError(
            f"{field_name} must be a whole number, got {value!r}", field=field_name
        )
    return int(amount)


def parse_date(value: Any, field_name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            # Accept both "2025-01-31" and full ISO timestamps
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    raise ValidationError(
        f"{field_name} must be an ISO date, got {value!r}", field=field_name
    )


def first_given(raw: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """
    Value of the first key in ``keys`` that is present and not None.

    Callers and extraction output mix snake_case and camelCase spellings,
    sometimes with the unused spelling present as an explicit null.
    """
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return default


def require_text(value: Any, field_name: str) -> str:
    text = "" if value is None else str(value).strip()
    if not text:
        raise ValidationError(f"{field_name} is required", field=field_name)
    return text


# =============================================================================
# Reference data views
# =============================================================================


@dataclass(frozen=True)
class VendorRef:
    id: UUID
    name: str
    email: str | None = None
    address: str | None = None


@dataclass(frozen=True)
class CategoryRef:
    id: UUID
    name: str
    description: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class UserRef:
    id: UUID
    display_name: str
    role: Role
    organization_name: str | None = None
    wallet_address: str | None = None

    @property
    def issuer_name(self) -> str:
        return self.organization_name or self.display_name


# =============================================================================
# Agreement inputs and views
# =============================================================================


@dataclass(frozen=True)
class AgreementLineSpec:
    """One requested line item for a new agreement."""

    item_name: str
    quantity: int
    unit_price: Decimal
    specifications: str | None = None

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValidationError("quantity must be positive", field="quantity")
        if self.unit_price <= 0:
            raise ValidationError("unit_price must be positive", field="unit_price")

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> AgreementLineSpec:
        """Build from a caller mapping (``itemName``/``item_name`` etc.)."""
        return cls(
            item_name=require_text(
                first_given(raw, "item_name", "itemName"), "item_name"
            ),
            quantity=parse_quantity(raw.get("quantity"), "quantity"),
            unit_price=parse_decimal(
                first_given(raw, "unit_price", "unitPrice"), "unit_price"
            ),
            specifications=raw.get("specifications"),
        )


@dataclass(frozen=True)
class AgreementItem:
    item_name: str
    specifications: str | None
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    position: int


@dataclass(frozen=True)
class Agreement:
    """Full agreement view with joined vendor/category names and items."""

    id: str
    vendor_id: UUID
    vendor_name: str
    category_id: UUID
    category_name: str
    title: str
    start_date: date
    end_date: date
    payment_terms: str | None
    total_value: Decimal
    status: AgreementStatus
    created_by: UUID
    created_at: datetime
    updated_at: datetime
    items: tuple[AgreementItem, ...] = ()


# =============================================================================
# Invoice inputs and views
# =============================================================================


@dataclass(frozen=True)
class InvoiceLineSpec:
    description: str
    quantity: int
    unit_price: Decimal

    def __post_init__(self) -> None:
        if self.quantity < 0:
            raise ValidationError("quantity must not be negative", field="quantity")
        if self.unit_price < 0:
            raise ValidationError("unit_price must not be negative", field="unit_price")

    @property
    def total(self) -> Decimal:
        return self.unit_price * self.quantity

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> InvoiceLineSpec:
        return cls(
            description=str(raw.get("description") or "").strip(),
            quantity=parse_quantity(raw.get("quantity"), "quantity"),
            unit_price=parse_decimal(
                first_given(raw, "unit_price", "unitPrice"), "unit_price"
            ),
        )


@dataclass(frozen=True)
class InvoiceDraft:
    """
    A candidate invoice, before or after submission.

    Zero quantities are structurally allowed; the compliance gate reports
    them through its quantity check instead of rejecting the draft.
    """

    vendor_name: str
    invoice_number: str
    receipt_date: date
    items: tuple[InvoiceLineSpec, ...]
    tax_amount: Decimal = Decimal("0")
    confidence_score: Decimal | None = None

    def __post_init__(self) -> None:
        if not self.vendor_name.strip():
            raise ValidationError("vendor_name is required", field="vendor_name")
        if not self.invoice_number.strip():
            raise ValidationError("invoice_number is required", field="invoice_number")
        if not self.items:
            raise ValidationError("invoice must have at least one item", field="items")
        if self.tax_amount < 0:
            raise ValidationError("tax_amount must not be negative", field="tax_amount")
        if self.confidence_score is not None and not (
            Decimal("0") <= self.confidence_score <= Decimal("1")
        ):
            raise ValidationError(
                "confidence_score must be between 0 and 1", field="confidence_score"
            )

    @property
    def subtotal(self) -> Decimal:
        return sum((item.total for item in self.items), Decimal("0"))

    @property
    def grand_total(self) -> Decimal:
        return self.subtotal + self.tax_amount

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> InvoiceDraft:
        """Parse caller or extraction output (camelCase or snake_case keys)."""
        raw_items = raw.get("items") or ()
        if isinstance(raw_items, (str, bytes)) or not isinstance(raw_items, Sequence):
            raise ValidationError("items must be a list", field="items")
        if not all(isinstance(item, Mapping) for item in raw_items):
            raise ValidationError("each item must be a mapping", field="items")
        confidence = first_given(raw, "confidence_score", "confidenceScore")
        return cls(
            vendor_name=require_text(
                first_given(raw, "vendor_name", "vendorName", "vendor"),
                "vendor_name",
            ),
            invoice_number=require_text(
                first_given(raw, "invoice_number", "invoiceNumber"), "invoice_number"
            ),
            receipt_date=parse_date(
                first_given(raw, "receipt_date", "date"), "receipt_date"
            ),
            items=tuple(InvoiceLineSpec.from_raw(item) for item in raw_items),
            tax_amount=parse_decimal(
                first_given(raw, "tax_amount", "taxAmount", default=0), "tax_amount"
            ),
            confidence_score=(
                None if confidence is None
                else parse_decimal(confidence, "confidence_score")
            ),
        )


@dataclass(frozen=True)
class ReceiptItem:
    description: str
    quantity: int
    unit_price: Decimal
    total: Decimal
    sequence: int


@dataclass(frozen=True)
class SettlementRecord:
    tx_hash: str
    block_number: int
    network: str


@dataclass(frozen=True)
class DocumentRecord:
    cid: str
    file_type: str


@dataclass(frozen=True)
class Receipt:
    id: str
    agreement_id: str | None
    vendor_name: str
    invoice_number: str
    receipt_date: date
    category_id: UUID
    category_name: str
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    status: ReceiptStatus
    confidence_score: Decimal | None
    created_by: UUID
    created_at: datetime
    items: tuple[ReceiptItem, ...] = ()
    settlement: SettlementRecord | None = None
    document: DocumentRecord | None = None


@dataclass(frozen=True)
class ReceiptPage:
    data: tuple[Receipt, ...]
    total: int
    page: int
    limit: int


# =============================================================================
# Approval views
# =============================================================================


@dataclass(frozen=True)
class ApprovalLogEntry:
    id: UUID
    seq: int
    agreement_id: str | None
    receipt_id: str | None
    approver_id: UUID
    role_at_time: Role
    action: str
    notes: str | None
    created_at: datetime
    hash: str


@dataclass(frozen=True)
class ActionResult:
    """Outcome of one applied approval action."""

    target_type: TargetType
    target_id: str
    previous_status: str
    new_status: str
    log_entry: ApprovalLogEntry
    settlement: SettlementRecord | None = None


@dataclass(frozen=True)
class DailyLimitView:
    """One row of the category x optional-limit view."""

    category_id: UUID
    category_name: str
    limit_amount: Decimal
    is_default: bool
    limit_id: UUID | None = None


@dataclass(frozen=True)
class PendingQueue:
    role: Role
    agreements: tuple[Agreement, ...] = ()
    invoices: tuple[Receipt, ...] = ()

    @property
    def total_pending(self) -> int:
        return len(self.agreements) + len(self.invoices)


# =============================================================================
# Range disclosure
# =============================================================================


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar window [start 00:00, end 23:59:59]."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValidationError("date range end precedes start", field="date_range")

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> DateRange:
        return cls(
            start=parse_date(raw.get("start"), "date_range.start"),
            end=parse_date(raw.get("end"), "date_range.end"),
        )


@dataclass(frozen=True)
class RangeProof:
    """Issuer-side view of a proof.  Status is the effective (lazy) status."""

    id: str
    owner_user_id: UUID
    name: str
    purpose: str | None
    date_range_start: datetime
    date_range_end: datetime
    proof_type: str
    range_min: Decimal | None
    range_max: Decimal | None
    proof_hash: str
    status: ProofStatus
    created_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class ProofVerification:
    """Public verification view.  Carries claim metadata only, never a total."""

    id: str
    name: str
    purpose: str | None
    proof_type: str
    range_min: Decimal | None
    range_max: Decimal | None
    date_range_start: datetime
    date_range_end: datetime
    status: ProofStatus
    issuer_name: str
    proof_hash: str
    created_at: datetime
    expires_at: datetime


# =============================================================================
# Reporting
# =============================================================================


@dataclass(frozen=True)
class CategorySpend:
    category: str
    amount: Decimal
    count: int
    limit: Decimal


@dataclass(frozen=True)
class DashboardSummary:
    active_agreements: int
    pending_invoices: int
    approved_this_month: int
    total_value_this_month: Decimal
    category_spending: tuple[CategorySpend, ...] = field(default_factory=tuple)
