"""Approval service.

Provides the high-level approval lifecycle: creating approvals together with
their signature envelope, deciding them behind a live signature check, and
refreshing the mirrored signature state on demand.
"""

import logging
from typing import Optional, Dict, Any, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from signoff.core.access import ensure_project_access, ensure_can_mutate, can_view_signature_url
from signoff.core.config import Settings, get_settings
from signoff.core.errors import (
    SignoffError,
    ApprovalNotFoundError,
    MalformedProviderResponseError,
    UnableToRefreshSignatureStatusError,
)
from signoff.db.models import Approval, AuditLog, User
from signoff.signature.provider import SignatureProvider
from signoff.signature.schemas import SignatureEnvelope
from .machine import ApprovalStateMachine
from .repository import ApprovalRepository
from .schemas import ApprovalCreate, ApprovalTransitionRequest
from .states import ApprovalStatus

logger = logging.getLogger(__name__)


class ApprovalService:
    """
    High-level service for approvals gated on electronic signatures.

    Handles:
    - Creating approvals (one provider envelope per approval)
    - Deciding approvals, with a live signature check before approving
    - On-demand signature status refresh
    - Listing and reading approvals, redacted per viewer role

    Only flushes; callers own the transaction.
    """

    def __init__(
        self,
        db: Session,
        provider: SignatureProvider,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.provider = provider
        self.settings = settings or get_settings()
        self.repository = ApprovalRepository(db)

    def create_approval(
        self,
        project_id: int,
        payload: ApprovalCreate,
        actor: User,
    ) -> Dict[str, Any]:
        """
        Request sign-off: create the provider envelope, then the approval.

        The approval row is only written once the envelope exists, so a
        provider failure leaves nothing behind.

        Raises:
            PermissionDeniedError: Actor may not create approvals here
            NotConfiguredError, ProviderRequestFailedError,
            MalformedProviderResponseError: Envelope creation failed, or the
                provider returned an envelope id that is already in use
        """
        ensure_can_mutate(self.db, project_id, actor)

        envelope = self.provider.create_envelope(
            title=payload.title,
            document_template_id=payload.document_template_id,
            signer=payload.signer,
            callback_url=self.settings.signature_callback_url,
            redirect_url=str(payload.redirect_url) if payload.redirect_url else None,
            project_id=project_id,
        )

        if self.repository.get_by_envelope_id(envelope.envelope_id):
            raise self._duplicate_envelope(envelope.envelope_id)

        approval = Approval(
            project_id=project_id,
            title=payload.title,
            description=payload.description,
            status=ApprovalStatus.PENDING.value,
            created_by_id=actor.id,
            signature_envelope_id=envelope.envelope_id,
            signature_document_id=envelope.document_id,
            signature_url=envelope.signing_url,
            signature_status=envelope.status.value,
            signature_sent_at=envelope.sent_at,
            signature_completed_at=envelope.completed_at,
            signature_declined_at=envelope.declined_at,
            version=1,
        )
        try:
            self.repository.add(approval)
        except IntegrityError as e:
            raise self._duplicate_envelope(envelope.envelope_id) from e

        self._audit(actor, "APPROVAL_CREATED", {
            "project_id": project_id,
            "approval_id": approval.id,
            "envelope_id": envelope.envelope_id,
        })
        logger.info(
            f"Approval {approval.id} created for project {project_id} "
            f"(envelope {envelope.envelope_id}, signature {envelope.status.value})"
        )

        return self._approval_to_dict(approval, actor)

    def transition_approval(
        self,
        project_id: int,
        approval_id: int,
        payload: ApprovalTransitionRequest,
        actor: User,
    ) -> Dict[str, Any]:
        """
        Decide a pending approval.

        Approving performs a live envelope lookup; the cached signature
        status is never trusted.

        Raises:
            PermissionDeniedError: Actor may not decide approvals here
            ApprovalNotFoundError: No such approval in this project
            InvalidStatusTransitionError: Outside PENDING → APPROVED | REJECTED,
                or another decision won the race
            UnableToRefreshSignatureStatusError: Provider unreachable (retry)
            SignatureNotCompletedError: Provider says the signature is not done
        """
        ensure_can_mutate(self.db, project_id, actor)

        approval = self.repository.get_for_project(project_id, approval_id)
        if not approval:
            raise ApprovalNotFoundError(approval_id)

        machine = ApprovalStateMachine(approval.id, ApprovalStatus(approval.status))
        machine.validate(payload.status)

        envelope = None
        if machine.requires_signature_check(payload.status):
            envelope = self._fetch_envelope(approval)

        machine.transition(
            payload.status,
            user_id=actor.id,
            signature_status=envelope.status if envelope else None,
            comment=payload.comment,
        )

        if envelope is not None:
            # The gate decided on this envelope, so it must be what gets stored
            self.repository.merge_signature(approval.id, envelope, authoritative=True)

        record = machine.last_transition
        approval = self.repository.apply_decision(
            approval.id,
            payload.status,
            decided_by_id=actor.id,
            decided_at=record["timestamp"],
        )

        self._audit(actor, "APPROVAL_TRANSITIONED", {
            "project_id": project_id,
            "approval_id": approval.id,
            "from_status": record["from_status"],
            "status": approval.status,
            "signature_status": approval.signature_status,
            "comment": payload.comment,
        })
        logger.info(f"Approval {approval.id} {record['from_status']} -> {approval.status} by user {actor.id}")

        return self._approval_to_dict(approval, actor)

    def refresh_signature_status(
        self,
        project_id: int,
        approval_id: int,
        actor: User,
    ) -> Dict[str, Any]:
        """Pull the envelope state from the provider and merge it into the approval."""
        ensure_project_access(self.db, project_id, actor)

        approval = self.repository.get_for_project(project_id, approval_id)
        if not approval:
            raise ApprovalNotFoundError(approval_id)

        envelope = self._fetch_envelope(approval)
        approval = self.repository.merge_signature(approval.id, envelope)

        return self._approval_to_dict(approval, actor)

    def get_approval(self, project_id: int, approval_id: int, actor: User) -> Dict[str, Any]:
        ensure_project_access(self.db, project_id, actor)

        approval = self.repository.get_for_project(project_id, approval_id)
        if not approval:
            raise ApprovalNotFoundError(approval_id)
        return self._approval_to_dict(approval, actor)

    def list_approvals(
        self,
        project_id: int,
        actor: User,
        *,
        status: Optional[ApprovalStatus] = None,
    ) -> List[Dict[str, Any]]:
        """List a project's approvals, newest first."""
        ensure_project_access(self.db, project_id, actor)
        return [
            self._approval_to_dict(a, actor)
            for a in self.repository.list_for_project(project_id, status)
        ]

    def _fetch_envelope(self, approval: Approval) -> SignatureEnvelope:
        try:
            return self.provider.get_envelope_status(approval.signature_envelope_id)
        except SignoffError as e:
            logger.warning(
                f"Could not refresh signature status for approval {approval.id} "
                f"(envelope {approval.signature_envelope_id}): {e.kind.value}"
            )
            raise UnableToRefreshSignatureStatusError(cause=e) from e

    def _duplicate_envelope(self, envelope_id: str) -> MalformedProviderResponseError:
        logger.error(f"Signature provider returned envelope {envelope_id}, which is already linked to an approval")
        return MalformedProviderResponseError(f"Signature provider reused envelope id {envelope_id}")

    def _audit(self, actor: User, action: str, extra_data: Dict[str, Any]) -> None:
        self.db.add(AuditLog(user_id=actor.id, action=action, extra_data=extra_data))
        self.db.flush()

    def _approval_to_dict(self, approval: Approval, viewer: User) -> Dict[str, Any]:
        """Convert an Approval model to a dictionary, redacted for ``viewer``."""
        return {
            "id": approval.id,
            "project_id": approval.project_id,
            "title": approval.title,
            "description": approval.description,
            "status": approval.status,
            "created_by_id": approval.created_by_id,
            "decided_by_id": approval.decided_by_id,
            "decided_at": approval.decided_at,
            "signature_envelope_id": approval.signature_envelope_id,
            "signature_document_id": approval.signature_document_id,
            "signature_url": approval.signature_url if can_view_signature_url(viewer) else None,
            "signature_status": approval.signature_status,
            "signature_sent_at": approval.signature_sent_at,
            "signature_completed_at": approval.signature_completed_at,
            "signature_declined_at": approval.signature_declined_at,
            "created_at": approval.created_at,
            "updated_at": approval.updated_at,
        }
