"""
Module: procurement_kernel.models.range_proof
Responsibility: Persisted range-disclosure attestations.
Architecture position: Kernel > Models.  Written by RangeProofService.

Invariants enforced:
    - Only claim metadata is stored.  The aggregate that satisfied the
      claim is never persisted.
    - All fields are frozen after insert except ``status`` moving
      ``valid -> revoked`` (db/immutability.py).
    - Stored status never becomes ``expired``; expiry is derived from
      ``expires_at`` at read time.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import Base


class RangeProofModel(Base):
    __tablename__ = "range_proofs"

    __table_args__ = (
        CheckConstraint(
            "status IN ('valid', 'expired', 'revoked')",
            name="ck_range_proofs_valid_status",
        ),
        CheckConstraint(
            "proof_type IN ('between', 'less-than', 'greater-than', 'equals')",
            name="ck_range_proofs_valid_type",
        ),
        Index("idx_range_proof_owner", "owner_user_id"),
    )

    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    owner_user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    purpose: Mapped[str | None] = mapped_column(Text, nullable=True)
    date_range_start: Mapped[datetime] = mapped_column(nullable=False)
    date_range_end: Mapped[datetime] = mapped_column(nullable=False)
    proof_type: Mapped[str] = mapped_column(String(20), nullable=False)
    range_min: Mapped[Decimal | None] = mapped_column(nullable=True)
    range_max: Mapped[Decimal | None] = mapped_column(nullable=True)
    proof_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<RangeProof {self.id} {self.proof_type} ({self.status})>"
