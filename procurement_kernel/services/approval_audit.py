"""
ApprovalAuditTrail -- append-only, hash-chained approval log.

Responsibility:
    Writes ApprovalLog rows for the approval action processor and answers
    forensic queries over them.  Each row carries a monotonic ``seq`` and
    a chain hash over its payload and its predecessor's hash, so any edit
    or deletion that slipped past the ORM guards is detectable.

Invariants enforced:
    - ``seq`` comes from the locked ``approval_log`` counter, which also
      serializes the read of the previous hash.
    - hash = H(target_type | target_id | action | payload_hash | prev_hash)
    - The first row has no ``prev_hash``.

Failure modes:
    - ApprovalLogChainBrokenError from validate_chain().
"""

from typing import Any
from uuid import UUID

from sqlalchemy import func, select

from procurement_kernel.domain.clock import as_utc
from procurement_kernel.domain.dtos import ApprovalLogEntry
from procurement_kernel.domain.lifecycle import Role, TargetType
from procurement_kernel.exceptions import ApprovalLogChainBrokenError
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.approval_log import ApprovalLogModel
from procurement_kernel.services.base import BaseService
from procurement_kernel.services.sequence_service import SequenceService
from procurement_kernel.utils.hashing import hash_approval_log, hash_payload

logger = get_logger("services.approval_audit")


def _payload(log: ApprovalLogModel) -> dict[str, Any]:
    return {
        "approver_id": log.approver_id,
        "role_at_time": log.role_at_time,
        "action": log.action,
        "notes": log.notes,
        "created_at": as_utc(log.created_at),
    }


def _chain_hash(log: ApprovalLogModel, payload_hash: str, prev_hash: str | None) -> str:
    return hash_approval_log(
        target_type=log.target_type,
        target_id=log.target_id,
        action=log.action,
        payload_hash=payload_hash,
        prev_hash=prev_hash,
    )


class ApprovalAuditTrail(BaseService):

    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        self._sequences = SequenceService(session)

    def _last_hash(self) -> str | None:
        last = self.session.execute(
            select(ApprovalLogModel).order_by(ApprovalLogModel.seq.desc()).limit(1)
        ).scalar_one_or_none()
        return last.hash if last else None

    def append(
        self,
        *,
        target_type: TargetType | None,
        target_id: str | None,
        approver_id: UUID,
        role: Role,
        action: str,
        notes: str | None,
    ) -> ApprovalLogModel:
        """
        Append one row.  ``target_type=None`` records a limit change, which
        references neither an agreement nor a receipt.
        """
        seq = self._sequences.next_value(SequenceService.APPROVAL_LOG)
        prev_hash = self._last_hash()

        log = ApprovalLogModel(
            seq=seq,
            agreement_id=target_id if target_type is TargetType.AGREEMENT else None,
            receipt_id=target_id if target_type is TargetType.INVOICE else None,
            approver_id=approver_id,
            role_at_time=role.value,
            action=action,
            notes=notes,
            created_at=self.clock.now(),
        )
        log.payload_hash = hash_payload(_payload(log))
        log.prev_hash = prev_hash
        log.hash = _chain_hash(log, log.payload_hash, prev_hash)

        self.session.add(log)
        self.session.flush()

        logger.info(
            "approval_log_appended",
            extra={
                "seq": seq,
                "action": action,
                "target_type": log.target_type,
                "target_id": log.target_id,
            },
        )
        return log

    def history_for(self, target_type: TargetType | str, target_id: str) -> list[ApprovalLogEntry]:
        """All rows for one agreement or invoice, oldest first."""
        target_type = TargetType.parse(target_type, "target_type")
        column = (
            ApprovalLogModel.agreement_id
            if target_type is TargetType.AGREEMENT
            else ApprovalLogModel.receipt_id
        )
        rows = self.session.execute(
            select(ApprovalLogModel).where(column == target_id).order_by(ApprovalLogModel.seq)
        ).scalars()
        return [row.to_dto() for row in rows]

    def limit_updates(self) -> list[ApprovalLogEntry]:
        rows = self.session.execute(
            select(ApprovalLogModel)
            .where(
                ApprovalLogModel.agreement_id.is_(None),
                ApprovalLogModel.receipt_id.is_(None),
            )
            .order_by(ApprovalLogModel.seq)
        ).scalars()
        return [row.to_dto() for row in rows]

    def count(self) -> int:
        return self.session.execute(
            select(func.count()).select_from(ApprovalLogModel)
        ).scalar_one()

    def validate_chain(self) -> bool:
        """
        Recompute every payload hash and chain hash in ``seq`` order.

        Raises:
            ApprovalLogChainBrokenError: at the first row that does not match.
        """
        logs = self.session.execute(
            select(ApprovalLogModel).order_by(ApprovalLogModel.seq)
        ).scalars().all()

        prev_hash = None
        for log in logs:
            if log.prev_hash != prev_hash:
                logger.critical("approval_log_chain_broken", extra={"seq": log.seq})
                raise ApprovalLogChainBrokenError(
                    log.id, str(prev_hash), str(log.prev_hash),
                )
            expected = _chain_hash(log, hash_payload(_payload(log)), prev_hash)
            if log.hash != expected:
                logger.critical("approval_log_chain_broken", extra={"seq": log.seq})
                raise ApprovalLogChainBrokenError(log.id, expected, log.hash)
            prev_hash = log.hash

        return True
