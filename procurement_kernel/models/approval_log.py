"""
Module: procurement_kernel.models.approval_log
Responsibility: Append-only record of every approval decision and limit
    change, chained by hash for tamper evidence.
Architecture position: Kernel > Models.  Written only through
    ApprovalAuditTrail; read by forensic queries.

Invariants enforced:
    - Rows are never updated or deleted (db/immutability.py).
    - At most one of ``agreement_id`` / ``receipt_id`` is set; both null
      means a LIMIT_UPDATE row.
    - ``seq`` is strictly monotonic (SequenceService counter).
    - ``hash`` = H(target_type | target_id | action | payload_hash | prev_hash).
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import Base


class ApprovalLogModel(Base):
    __tablename__ = "approval_logs"

    __table_args__ = (
        CheckConstraint(
            "NOT (agreement_id IS NOT NULL AND receipt_id IS NOT NULL)",
            name="ck_approval_logs_single_target",
        ),
        Index("idx_approval_log_agreement", "agreement_id"),
        Index("idx_approval_log_receipt", "receipt_id"),
    )

    seq: Mapped[int] = mapped_column(nullable=False, unique=True)
    agreement_id: Mapped[str | None] = mapped_column(
        ForeignKey("agreements.id"), nullable=True,
    )
    receipt_id: Mapped[str | None] = mapped_column(
        ForeignKey("receipts.id"), nullable=True,
    )
    approver_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    role_at_time: Mapped[str] = mapped_column(String(20), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    @property
    def target_type(self) -> str:
        if self.agreement_id is not None:
            return "agreement"
        if self.receipt_id is not None:
            return "invoice"
        return "daily_limit"

    @property
    def target_id(self) -> str | None:
        return self.agreement_id or self.receipt_id

    def to_dto(self):
        from procurement_kernel.domain.clock import as_utc
        from procurement_kernel.domain.dtos import ApprovalLogEntry
        from procurement_kernel.domain.lifecycle import Role

        return ApprovalLogEntry(
            id=self.id,
            seq=self.seq,
            agreement_id=self.agreement_id,
            receipt_id=self.receipt_id,
            approver_id=self.approver_id,
            role_at_time=Role(self.role_at_time),
            action=self.action,
            notes=self.notes,
            created_at=as_utc(self.created_at),
            hash=self.hash,
        )

    def __repr__(self) -> str:
        return f"<ApprovalLog #{self.seq} {self.action} {self.target_id}>"
