"""Tests for time-bounded collaborator calls and the simulated gateways."""

import time
from decimal import Decimal

import pytest

from procurement_kernel.config import KernelSettings
from procurement_kernel.domain.collaborators import SettlementRequest
from procurement_kernel.exceptions import DependencyError
from procurement_kernel.services.gateways import (
    SimulatedDocumentExtractor,
    SimulatedDocumentStore,
    SimulatedLedgerGateway,
    call_with_timeout,
)


class TestCallWithTimeout:

    def test_returns_result(self):
        assert call_with_timeout("calc", lambda a, b: a + b, 2, 3, timeout=1) == 5

    def test_exception_becomes_dependency_error(self):
        def boom():
            raise ConnectionError("refused")

        with pytest.raises(DependencyError) as exc_info:
            call_with_timeout("ledger", boom, timeout=1)
        assert exc_info.value.dependency == "ledger"
        assert exc_info.value.reason == "refused"
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_timeout_becomes_dependency_error(self, captured_logs):
        started = time.monotonic()
        with pytest.raises(DependencyError) as exc_info:
            call_with_timeout("ledger", time.sleep, 2, timeout=0.05)

        assert time.monotonic() - started < 1.5
        assert "no response" in exc_info.value.reason
        assert any(r["message"] == "collaborator_timeout" for r in captured_logs())


class TestSimulatedGateways:

    def test_ledger_reference_shape(self):
        ledger = SimulatedLedgerGateway(network_name="testnet")
        request = SettlementRequest("RCP-2025-0001", "INV-1", Decimal("10"))

        ref = ledger.settle(request)
        assert ref.transaction_id.startswith("0x")
        assert len(ref.transaction_id) == 66
        assert ref.network_name == "testnet"
        assert ledger.settled == [request]

    def test_document_store_is_content_addressed(self):
        store = SimulatedDocumentStore()
        first = store.put(b"abc", "image/png")
        second = store.put(b"abc", "image/png")
        assert first == second
        assert first.startswith("Qm")
        assert len(first) == 46
        assert store.put(b"abd", "image/png") != first

    def test_extractor_returns_copies(self):
        extractor = SimulatedDocumentExtractor({"vendorName": "x"})
        result = extractor.extract(b"", "image/jpeg")
        result["vendorName"] = "changed"
        assert extractor.extract(b"", "image/jpeg") == {"vendorName": "x"}

    def test_ledger_network_from_settings(self):
        ledger = SimulatedLedgerGateway.from_settings(KernelSettings(ledger_network="Lisk Mainnet"))
        ref = ledger.settle(SettlementRequest("RCP-2025-0002", "INV-2", Decimal("1")))
        assert ref.network_name == "Lisk Mainnet"
