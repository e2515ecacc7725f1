"""Persistence for approvals with atomic read-modify-write per approval id.

Writes never rely on a previously loaded snapshot being current:
- Decisions are a compare-and-set on ``status = 'pending'``.
- Signature merges are a compare-and-set on ``version``, recomputed from a
  fresh read when another writer got there first.
"""

import logging
from datetime import datetime
from typing import Optional, List

from sqlalchemy import select, update, and_
from sqlalchemy.orm import Session

from signoff.core.errors import ConcurrentModificationError, InvalidStatusTransitionError
from signoff.db.models import Approval
from signoff.signature.schemas import SignatureEnvelope
from .signature import build_signature_patch
from .states import ApprovalStatus

logger = logging.getLogger(__name__)

MAX_MERGE_ATTEMPTS = 3


class ApprovalRepository:
    """Approval queries and guarded updates on a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, approval_id: int) -> Optional[Approval]:
        """Load an approval, refreshing any copy already in the session."""
        stmt = (
            select(Approval)
            .where(Approval.id == approval_id)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_for_project(self, project_id: int, approval_id: int) -> Optional[Approval]:
        approval = self.get(approval_id)
        if approval is None or approval.project_id != project_id:
            return None
        return approval

    def get_by_envelope_id(self, envelope_id: str) -> Optional[Approval]:
        stmt = (
            select(Approval)
            .where(Approval.signature_envelope_id == envelope_id)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_for_project(self, project_id: int, status: Optional[ApprovalStatus] = None) -> List[Approval]:
        stmt = select(Approval).where(Approval.project_id == project_id)
        if status is not None:
            stmt = stmt.where(Approval.status == status.value)
        stmt = stmt.order_by(Approval.created_at.desc(), Approval.id.desc())
        return list(self.db.execute(stmt).scalars().all())

    def add(self, approval: Approval) -> Approval:
        self.db.add(approval)
        self.db.flush()
        return approval

    def merge_signature(
        self,
        approval_id: int,
        envelope: SignatureEnvelope,
        *,
        authoritative: bool = False,
    ) -> Approval:
        """
        Merge envelope state into an approval.

        Idempotent: replaying the same envelope yields no further change.
        With ``authoritative`` the ordering guard is skipped (live gate reads).

        Raises:
            ConcurrentModificationError: If the row kept changing underneath
                across all attempts
        """
        for attempt in range(1, MAX_MERGE_ATTEMPTS + 1):
            approval = self.get(approval_id)
            if approval is None:
                raise ConcurrentModificationError(f"Approval {approval_id} disappeared during merge")

            patch = build_signature_patch(approval, envelope, authoritative=authoritative)
            if not patch:
                return approval

            expected_version = approval.version
            stmt = (
                update(Approval)
                .where(and_(Approval.id == approval_id, Approval.version == expected_version))
                .values(**patch, version=expected_version + 1, updated_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            result = self.db.execute(stmt)
            if result.rowcount == 1:
                return self.get(approval_id)

            logger.info(
                f"Approval {approval_id} changed during signature merge "
                f"(attempt {attempt}/{MAX_MERGE_ATTEMPTS}), retrying"
            )

        raise ConcurrentModificationError(
            f"Approval {approval_id} was modified concurrently; signature merge abandoned"
        )

    def apply_decision(
        self,
        approval_id: int,
        status: ApprovalStatus,
        *,
        decided_by_id: int,
        decided_at: datetime,
    ) -> Approval:
        """
        Record a terminal decision if, and only if, the approval is still pending.

        Raises:
            InvalidStatusTransitionError: If another writer decided first
        """
        stmt = (
            update(Approval)
            .where(and_(Approval.id == approval_id, Approval.status == ApprovalStatus.PENDING.value))
            .values(
                status=status.value,
                decided_by_id=decided_by_id,
                decided_at=decided_at,
                version=Approval.version + 1,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        approval = self.get(approval_id)
        if result.rowcount != 1:
            current = approval.status if approval else "unknown"
            raise InvalidStatusTransitionError(current, status.value)
        return approval
