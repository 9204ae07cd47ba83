"""
External collaborator contracts.

The kernel consumes a ledger, a document store and a document-extraction
service only through these protocols.  Implementations live outside the
domain layer (see ``procurement_kernel.services.gateways``).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol


@dataclass(frozen=True)
class SettlementRequest:
    receipt_id: str
    invoice_number: str
    total_amount: Decimal


@dataclass(frozen=True)
class SettlementReference:
    transaction_id: str
    block_reference: int
    network_name: str


class LedgerGateway(Protocol):
    """Records an approved invoice on the external ledger."""

    def settle(self, request: SettlementRequest) -> SettlementReference:
        ...


class DocumentStore(Protocol):
    """Stores uploaded source documents and returns a content identifier."""

    def put(self, content: bytes, content_type: str) -> str:
        ...


class DocumentExtractor(Protocol):
    """
    Best-effort structured extraction of an invoice document.

    Output is untrusted: it is parsed exactly like manually keyed data.
    """

    def extract(self, content: bytes, content_type: str) -> dict[str, Any]:
        ...
