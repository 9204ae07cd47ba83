"""
RangeProofService -- range-disclosure attestations over verified spend.

Responsibility:
    Issues a time-boxed attestation that the verified spend in a date
    window satisfies a predicate (between / less-than / greater-than /
    equals), without ever publishing the figure itself.  Verification is
    public and returns claim metadata only.

State machine per proof:
    (none) -> valid -> expired   (derived at read time from expires_at)
                   \\-> revoked  (explicit CFO action)

Invariants enforced:
    - A proof is persisted only if its claim holds at issuance time.
    - The aggregate is never returned, stored or logged.  A failed claim
      raises ClaimNotSatisfiedError carrying only the claim.
    - Expiry is lazy: ``now > expires_at`` reports ``expired`` regardless
      of the stored status.  No sweep job writes ``expired``.
    - This service never mutates agreements, receipts or limits.

Failure modes:
    - ValidationError: malformed claim or date range.
    - UserNotFoundError: unknown requester.
    - ClaimNotSatisfiedError: predicate false for the window.
    - ProofNotFoundError: unknown proof id.
    - AuthorizationError / InvalidStateError: from revoke_proof().
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, time, timedelta, timezone
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select

from procurement_kernel.config import KernelSettings
from procurement_kernel.domain.clock import as_utc
from procurement_kernel.domain.dtos import DateRange, ProofVerification, RangeProof
from procurement_kernel.domain.lifecycle import ProofStatus, Role
from procurement_kernel.domain.range_claim import RangeClaim
from procurement_kernel.exceptions import (
    AuthorizationError,
    ClaimNotSatisfiedError,
    InvalidStateError,
    ProofNotFoundError,
)
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.models.range_proof import RangeProofModel
from procurement_kernel.models.reference import UserAccount
from procurement_kernel.selectors.spend_selector import SpendSelector
from procurement_kernel.services.base import BaseService
from procurement_kernel.services.reference_data import ReferenceDataService
from procurement_kernel.utils.hashing import attestation_hash

logger = get_logger("services.range_proof")

DEFAULT_PROOF_NAME = "General Expenditure Proof"
PROOF_ID_PREFIX = "ZKP-"
_END_OF_DAY = time(23, 59, 59)


class RangeProofService(BaseService):

    def __init__(self, session, clock=None, *, settings: KernelSettings | None = None):
        super().__init__(session, clock)
        self.settings = settings or KernelSettings()
        self._reference = ReferenceDataService(session, self.clock)
        self._spend = SpendSelector(session, self.settings.default_daily_limit)

    # -------------------------------------------------------------------------
    # Issuance
    # -------------------------------------------------------------------------

    def generate_proof(
        self,
        date_range: DateRange | Mapping[str, Any],
        claim: RangeClaim | Mapping[str, Any],
        purpose: str | None,
        requester_id: UUID,
    ) -> RangeProof:
        if not isinstance(date_range, DateRange):
            date_range = DateRange.from_raw(date_range)
        if not isinstance(claim, RangeClaim):
            claim = RangeClaim.from_raw(claim)
        self._reference.get_user(requester_id)

        with LogContext.bind(actor_id=str(requester_id)):
            actual = self._spend.verified_total(date_range.start, date_range.end)
            satisfied = claim.is_satisfied_by(actual)

            if not satisfied:
                logger.info(
                    "range_proof_claim_not_satisfied",
                    extra={
                        **claim.describe(),
                        "date_range_start": date_range.start,
                        "date_range_end": date_range.end,
                    },
                )
                raise ClaimNotSatisfiedError(
                    claim.predicate.value, claim.range_min, claim.range_max,
                )

            now = self.clock.now()
            proof = RangeProofModel(
                id=f"{PROOF_ID_PREFIX}{uuid4().hex}",
                owner_user_id=requester_id,
                name=purpose or DEFAULT_PROOF_NAME,
                purpose=purpose,
                date_range_start=datetime.combine(
                    date_range.start, time.min, tzinfo=timezone.utc,
                ),
                date_range_end=datetime.combine(
                    date_range.end, _END_OF_DAY, tzinfo=timezone.utc,
                ),
                proof_type=claim.predicate.value,
                range_min=claim.range_min,
                range_max=claim.range_max,
                proof_hash=attestation_hash({
                    **claim.describe(),
                    "date_range_start": date_range.start,
                    "date_range_end": date_range.end,
                    "owner_user_id": requester_id,
                }),
                status=ProofStatus.VALID.value,
                created_at=now,
                expires_at=now + timedelta(days=self.settings.proof_validity_days),
            )
            self.session.add(proof)
            self.session.flush()

            logger.info(
                "range_proof_issued",
                extra={"proof_id": proof.id, **claim.describe()},
            )
        return self._to_dto(proof)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def effective_status(self, proof: RangeProofModel) -> ProofStatus:
        stored = ProofStatus(proof.status)
        if stored is ProofStatus.VALID and self.clock.now() > as_utc(proof.expires_at):
            return ProofStatus.EXPIRED
        return stored

    def _to_dto(self, proof: RangeProofModel) -> RangeProof:
        return RangeProof(
            id=proof.id,
            owner_user_id=proof.owner_user_id,
            name=proof.name,
            purpose=proof.purpose,
            date_range_start=as_utc(proof.date_range_start),
            date_range_end=as_utc(proof.date_range_end),
            proof_type=proof.proof_type,
            range_min=proof.range_min,
            range_max=proof.range_max,
            proof_hash=proof.proof_hash,
            status=self.effective_status(proof),
            created_at=as_utc(proof.created_at),
            expires_at=as_utc(proof.expires_at),
        )

    def _get_row(self, proof_id: str) -> RangeProofModel:
        proof = self.session.get(RangeProofModel, proof_id)
        if proof is None:
            raise ProofNotFoundError(proof_id)
        return proof

    def get_proof(self, proof_id: str) -> RangeProof:
        return self._to_dto(self._get_row(proof_id))

    def verify_proof(self, proof_id: str) -> ProofVerification:
        """Public verification view: claim metadata and issuer, no aggregate."""
        proof = self._get_row(proof_id)
        issuer = self.session.get(UserAccount, proof.owner_user_id)
        return ProofVerification(
            id=proof.id,
            name=proof.name,
            purpose=proof.purpose,
            proof_type=proof.proof_type,
            range_min=proof.range_min,
            range_max=proof.range_max,
            date_range_start=as_utc(proof.date_range_start),
            date_range_end=as_utc(proof.date_range_end),
            status=self.effective_status(proof),
            issuer_name=issuer.issuer_name,
            proof_hash=proof.proof_hash,
            created_at=as_utc(proof.created_at),
            expires_at=as_utc(proof.expires_at),
        )

    def list_proofs(self, owner_id: UUID | None = None) -> list[RangeProof]:
        """Newest first, with effective status."""
        query = select(RangeProofModel).order_by(
            RangeProofModel.created_at.desc(), RangeProofModel.id.desc(),
        )
        if owner_id is not None:
            query = query.where(RangeProofModel.owner_user_id == owner_id)
        return [self._to_dto(row) for row in self.session.execute(query).scalars()]

    # -------------------------------------------------------------------------
    # Revocation
    # -------------------------------------------------------------------------

    def revoke_proof(self, proof_id: str, actor_id: UUID, role: Role | str) -> RangeProof:
        role = Role.parse(role, "role")
        if role is not Role.CFO:
            raise AuthorizationError(role.value, "revoke range proofs")
        self._reference.get_user(actor_id)

        proof = self.session.execute(
            select(RangeProofModel)
            .where(RangeProofModel.id == proof_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if proof is None:
            raise ProofNotFoundError(proof_id)

        current = self.effective_status(proof)
        if current is not ProofStatus.VALID:
            raise InvalidStateError("RangeProof", proof_id, current.value, "revoke")

        proof.status = ProofStatus.REVOKED.value
        self.session.flush()

        with LogContext.bind(actor_id=str(actor_id), target_id=proof_id):
            logger.info("range_proof_revoked", extra={"proof_id": proof_id})
        return self._to_dto(proof)
