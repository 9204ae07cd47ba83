"""
Tests for ApprovalAuditTrail: sequencing, the hash chain, and tamper
detection.
"""

import pytest
from sqlalchemy import update

from procurement_kernel.domain.lifecycle import Role, TargetType
from procurement_kernel.exceptions import ApprovalLogChainBrokenError
from procurement_kernel.models.approval_log import ApprovalLogModel


@pytest.fixture
def three_entries(audit_trail, cfo_user, deterministic_clock):
    entries = []
    for target_type, target_id, action in [
        (TargetType.AGREEMENT, "AGR-2025-001", "APPROVE"),
        (TargetType.INVOICE, "RCP-2025-0001", "REJECT"),
        (None, None, "LIMIT_UPDATE"),
    ]:
        deterministic_clock.tick()
        entries.append(audit_trail.append(
            target_type=target_type,
            target_id=target_id,
            approver_id=cfo_user.id,
            role=Role.CFO,
            action=action,
            notes=None,
        ))
    return entries


class TestAppend:

    def test_seq_is_monotonic(self, three_entries):
        assert [e.seq for e in three_entries] == [1, 2, 3]

    def test_chain_links_previous_hash(self, three_entries):
        first, second, third = three_entries
        assert first.prev_hash is None
        assert second.prev_hash == first.hash
        assert third.prev_hash == second.hash

    def test_target_columns(self, three_entries):
        first, second, third = three_entries
        assert (first.agreement_id, first.receipt_id) == ("AGR-2025-001", None)
        assert (second.agreement_id, second.receipt_id) == (None, "RCP-2025-0001")
        assert third.target_type == "daily_limit"
        assert third.target_id is None

    def test_history_and_limit_queries(self, three_entries, audit_trail):
        assert [e.seq for e in audit_trail.history_for("agreement", "AGR-2025-001")] == [1]
        assert [e.seq for e in audit_trail.history_for("invoice", "RCP-2025-0001")] == [2]
        assert [e.seq for e in audit_trail.limit_updates()] == [3]
        assert audit_trail.count() == 3


class TestValidateChain:

    def test_empty_chain_is_valid(self, audit_trail):
        assert audit_trail.validate_chain() is True

    def test_intact_chain_is_valid(self, three_entries, audit_trail):
        assert audit_trail.validate_chain() is True

    def test_tampered_notes_are_detected(self, three_entries, audit_trail, session):
        """A bulk UPDATE bypasses the ORM guards but not the chain."""
        session.execute(
            update(ApprovalLogModel)
            .where(ApprovalLogModel.seq == 2)
            .values(notes="approved after all")
            .execution_options(synchronize_session=False)
        )
        session.expire_all()

        with pytest.raises(ApprovalLogChainBrokenError) as exc_info:
            audit_trail.validate_chain()
        assert exc_info.value.log_id == str(three_entries[1].id)

    def test_relinked_chain_is_detected(self, three_entries, audit_trail, session):
        session.execute(
            update(ApprovalLogModel)
            .where(ApprovalLogModel.seq == 3)
            .values(prev_hash=three_entries[0].hash)
            .execution_options(synchronize_session=False)
        )
        session.expire_all()

        with pytest.raises(ApprovalLogChainBrokenError):
            audit_trail.validate_chain()
