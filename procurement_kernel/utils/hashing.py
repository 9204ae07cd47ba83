"""
Deterministic hashing utilities.

Canonical JSON + SHA-256 for approval log chaining and range-proof
attestations.  The same input always hashes to the same digest.
"""

import hashlib
import json
import secrets
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def _json_serializer(obj: Any) -> Any:
    """
    Serialize types json does not handle natively.

    Raises:
        TypeError: If the object type is not supported.
    """
    if isinstance(obj, Decimal):
        # Numeric(38, 9) round-trips with trailing zeros; normalize them away
        return str(obj.normalize())
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, bytes):
        return obj.hex()

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """Sorted keys, no whitespace, stable handling of Decimal/date/UUID."""
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict) -> str:
    """Hex SHA-256 (64 characters) of the canonical payload."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_approval_log(
    *,
    target_type: str,
    target_id: str | None,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Chain hash for one approval log row.

    hash = H(target_type | target_id | action | payload_hash | prev_hash)
    """
    parts = [
        target_type,
        target_id or "",
        action,
        payload_hash,
        prev_hash or "",
    ]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


def attestation_hash(claim: dict) -> str:
    """
    Opaque commitment over a range claim.

    A fresh 256-bit nonce is mixed in so two identical claims never share
    a hash, and the digest reveals nothing about the underlying total.
    """
    nonce = secrets.token_hex(32)
    digest = hashlib.sha256(
        f"{canonicalize_json(claim)}|{nonce}".encode("utf-8")
    ).hexdigest()
    return f"0x{digest}"
