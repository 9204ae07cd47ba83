"""
Collaborator gateways: time-bounded calls plus simulated implementations.

Every call into a ledger, document store or extraction service goes
through ``call_with_timeout``.  A collaborator that raises, or does not
answer within the configured timeout, surfaces as DependencyError; the
caller has not mutated anything at that point, so nothing is persisted.

The ``Simulated*`` classes stand in for the external services in local
runs and tests.  They honour the same contracts as production adapters.
"""

from __future__ import annotations

import hashlib
import secrets
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, TypeVar

from procurement_kernel.config import KernelSettings
from procurement_kernel.domain.collaborators import SettlementReference, SettlementRequest
from procurement_kernel.exceptions import DependencyError
from procurement_kernel.logging_config import get_logger

logger = get_logger("services.gateways")

T = TypeVar("T")

DEFAULT_NETWORK = "Lisk Sepolia"
SIMULATED_BLOCK_NUMBER = 12345678


def call_with_timeout(
    dependency: str,
    fn: Callable[..., T],
    *args: Any,
    timeout: float,
) -> T:
    """
    Run ``fn(*args)`` on a worker thread and wait at most ``timeout`` seconds.

    Raises:
        DependencyError: the call raised or timed out.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"{dependency}-call")
    try:
        future = executor.submit(fn, *args)
        return future.result(timeout=timeout)
    except FutureTimeoutError:
        logger.warning(
            "collaborator_timeout",
            extra={"dependency": dependency, "timeout_seconds": timeout},
        )
        raise DependencyError(dependency, f"no response within {timeout}s") from None
    except DependencyError:
        raise
    except Exception as exc:
        logger.warning(
            "collaborator_failed",
            extra={"dependency": dependency, "error": f"{type(exc).__name__}: {exc}"},
        )
        raise DependencyError(dependency, str(exc) or type(exc).__name__) from exc
    finally:
        # A hung collaborator must not hold up the caller.
        executor.shutdown(wait=False, cancel_futures=True)


class SimulatedLedgerGateway:
    """Returns a random 32-byte transaction hash on a fixed block."""

    def __init__(self, network_name: str = DEFAULT_NETWORK):
        self.network_name = network_name
        self.settled: list[SettlementRequest] = []

    @classmethod
    def from_settings(cls, settings: KernelSettings) -> SimulatedLedgerGateway:
        return cls(network_name=settings.ledger_network)

    def settle(self, request: SettlementRequest) -> SettlementReference:
        self.settled.append(request)
        return SettlementReference(
            transaction_id=f"0x{secrets.token_hex(32)}",
            block_reference=SIMULATED_BLOCK_NUMBER,
            network_name=self.network_name,
        )


class SimulatedDocumentStore:
    """Content-addressed in-memory store with IPFS-style ``Qm...`` ids."""

    def __init__(self):
        self.documents: dict[str, tuple[bytes, str]] = {}

    def put(self, content: bytes, content_type: str) -> str:
        cid = "Qm" + hashlib.sha256(content).hexdigest()[:44]
        self.documents[cid] = (content, content_type)
        return cid


class SimulatedDocumentExtractor:
    """Returns a fixed extraction result, as an OCR service would."""

    def __init__(self, result: Mapping[str, Any]):
        self.result = dict(result)

    def extract(self, content: bytes, content_type: str) -> dict[str, Any]:
        return dict(self.result)
