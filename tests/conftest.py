"""
Pytest fixtures for the procurement kernel test suite.

Provides:
- A session-scoped engine (in-memory SQLite unless DATABASE_URL is set)
- Per-test sessions isolated by outer-transaction rollback
- A DeterministicClock driving every service
- Seeded reference data (vendor, category, one user per role)
- Service fixtures and factory fixtures for agreements and invoices

Environment Variables:
- DATABASE_URL: optional PostgreSQL URL; defaults to ``sqlite://``.
"""

import json
import logging
import os
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from procurement_kernel.config import KernelSettings
from procurement_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from procurement_kernel.domain.clock import DeterministicClock
from procurement_kernel.domain.collaborators import SettlementRequest
from procurement_kernel.domain.dtos import InvoiceDraft, InvoiceLineSpec
from procurement_kernel.domain.lifecycle import Role
from procurement_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from procurement_kernel.services.agreement_service import AgreementLifecycleManager
from procurement_kernel.services.approval_audit import ApprovalAuditTrail
from procurement_kernel.services.approval_processor import ApprovalActionProcessor
from procurement_kernel.services.compliance_gate import InvoiceComplianceGate
from procurement_kernel.services.daily_limit_registry import DailyLimitRegistry
from procurement_kernel.services.gateways import (
    SimulatedDocumentStore,
    SimulatedLedgerGateway,
)
from procurement_kernel.services.range_proof_service import RangeProofService
from procurement_kernel.services.receipt_service import ReceiptService
from procurement_kernel.services.reference_data import ReferenceDataService

DEFAULT_DATABASE_URL = "sqlite://"


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture procurement_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, processor):
            processor.apply_action(...)
            logs = captured_logs()
            assert any(r["message"] == "approval_action_applied" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("procurement_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Single engine for the whole run; immutability listeners registered."""
    eng = init_engine_from_url(get_database_url(), echo=False)
    drop_tables()
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    """
    Session joined to an outer transaction that is rolled back at teardown.

    ``session.commit()`` inside a test releases a savepoint only, so every
    test starts from empty tables.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Time and settings
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    """Fixed at 2025-01-15 09:00 UTC."""
    return DeterministicClock()


@pytest.fixture
def settings() -> KernelSettings:
    return KernelSettings(database_url=get_database_url())


# =============================================================================
# Collaborators
# =============================================================================


class FailingLedger:
    """Ledger that always raises, to exercise the abort path."""

    def __init__(self, message: str = "rpc node unreachable"):
        self.message = message
        self.calls: list[SettlementRequest] = []

    def settle(self, request):
        self.calls.append(request)
        raise ConnectionError(self.message)


@pytest.fixture
def ledger() -> SimulatedLedgerGateway:
    return SimulatedLedgerGateway()


@pytest.fixture
def failing_ledger() -> FailingLedger:
    return FailingLedger()


@pytest.fixture
def document_store() -> SimulatedDocumentStore:
    return SimulatedDocumentStore()


# =============================================================================
# Reference data
# =============================================================================


@pytest.fixture
def reference(session, deterministic_clock) -> ReferenceDataService:
    return ReferenceDataService(session, deterministic_clock)


@pytest.fixture
def vendor(reference):
    return reference.register_vendor("PT Sumber Makmur", email="sales@sumber.example")


@pytest.fixture
def category(reference):
    return reference.register_category("Office Supplies", description="Paper, toner, stationery")


@pytest.fixture
def finance_user(reference):
    return reference.register_user("Fiona Finance", Role.FINANCE)


@pytest.fixture
def vendor_user(reference):
    return reference.register_user("Victor Vendor", Role.VENDOR)


@pytest.fixture
def cfo_user(reference):
    return reference.register_user(
        "Chris CFO", Role.CFO, organization_name="Acme Holdings",
    )


@pytest.fixture
def auditor_user(reference):
    return reference.register_user("Ada Auditor", Role.AUDITOR)


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def agreement_manager(session, deterministic_clock) -> AgreementLifecycleManager:
    return AgreementLifecycleManager(session, deterministic_clock)


@pytest.fixture
def limit_registry(session, settings) -> DailyLimitRegistry:
    return DailyLimitRegistry(session, settings.default_daily_limit)


@pytest.fixture
def compliance_gate(session, settings) -> InvoiceComplianceGate:
    return InvoiceComplianceGate(
        session, settings.compliance_policy, settings.default_daily_limit,
    )


@pytest.fixture
def audit_trail(session, deterministic_clock) -> ApprovalAuditTrail:
    return ApprovalAuditTrail(session, deterministic_clock)


@pytest.fixture
def processor(session, deterministic_clock, settings, ledger) -> ApprovalActionProcessor:
    return ApprovalActionProcessor(
        session, deterministic_clock, settings=settings, ledger=ledger,
    )


@pytest.fixture
def receipt_service(
    session, deterministic_clock, settings, ledger, document_store,
) -> ReceiptService:
    return ReceiptService(
        session,
        deterministic_clock,
        settings=settings,
        ledger=ledger,
        document_store=document_store,
    )


@pytest.fixture
def range_proof_service(session, deterministic_clock, settings) -> RangeProofService:
    return RangeProofService(session, deterministic_clock, settings=settings)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def create_agreement(agreement_manager, vendor, category, finance_user):
    """
    Factory for pending agreements.

    Default: one item, quantity 10 at 1,000,000, contract year 2025.
    """

    def _create(
        *,
        items=None,
        start_date=date(2025, 1, 1),
        end_date=date(2025, 12, 31),
        title="Office supplies 2025",
        category_id=None,
    ):
        return agreement_manager.create_agreement(
            vendor_id=vendor.id,
            category_id=category_id or category.id,
            title=title,
            start_date=start_date,
            end_date=end_date,
            payment_terms="Net 30",
            items=items or [
                {"itemName": "A4 Paper", "quantity": 10, "unitPrice": "1000000"},
            ],
            created_by=finance_user.id,
        )

    return _create


@pytest.fixture
def activate(processor, vendor_user, cfo_user):
    """Drive an agreement through vendor then CFO approval."""

    def _activate(agreement_id: str) -> None:
        processor.apply_action("agreement", agreement_id, "approve", "vendor", None, vendor_user.id)
        processor.apply_action("agreement", agreement_id, "approve", "cfo", None, cfo_user.id)

    return _activate


@pytest.fixture
def active_agreement(create_agreement, activate, agreement_manager):
    agreement = create_agreement()
    activate(agreement.id)
    return agreement_manager.get_agreement(agreement.id)


def _make_draft(
    *,
    total=Decimal("12000000"),
    tax=Decimal("0"),
    receipt_date=date(2025, 1, 15),
    invoice_number="INV-001",
    quantity=1,
) -> InvoiceDraft:
    """One-line draft whose grand total is ``total`` (tax included)."""
    unit_price = (total - tax) / quantity if quantity else total - tax
    return InvoiceDraft(
        vendor_name="PT Sumber Makmur",
        invoice_number=invoice_number,
        receipt_date=receipt_date,
        items=(InvoiceLineSpec("A4 Paper", quantity, unit_price),),
        tax_amount=tax,
    )


@pytest.fixture
def submit_invoice(receipt_service, active_agreement, finance_user):
    """Factory submitting a draft against the active agreement."""

    def _submit(draft: InvoiceDraft | None = None, **kwargs):
        return receipt_service.submit_invoice(
            active_agreement.id, draft or _make_draft(), finance_user.id, **kwargs,
        )

    return _submit


@pytest.fixture
def make_draft():
    """Factory for one-line invoice drafts; see ``_make_draft``."""
    return _make_draft
