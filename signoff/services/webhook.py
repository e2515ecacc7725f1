"""Signature webhook reconciliation.

Handles provider callbacks:
- Authentication (shared secret or HMAC) before anything else
- Payload validation
- Idempotent merge into the approval matching the envelope id

Unknown envelopes are acknowledged rather than failed so the provider does
not retry them forever.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional, Mapping

from sqlalchemy.orm import Session

from signoff.core.approval.repository import ApprovalRepository
from signoff.core.errors import AuthenticationFailedError, MalformedWebhookPayloadError, SignoffError
from signoff.signature.provider import SignatureProvider, HeaderValue

logger = logging.getLogger(__name__)


@dataclass
class WebhookOutcome:
    """Result of handling one webhook delivery."""
    status_code: int
    message: str
    approval_id: Optional[int] = None
    envelope_id: Optional[str] = None
    kind: Optional[str] = None

    @property
    def reconciled(self) -> bool:
        return self.status_code == 200

    @classmethod
    def from_error(cls, error: SignoffError) -> "WebhookOutcome":
        return cls(error.http_status, error.message, kind=error.kind.value)


class SignatureWebhookHandler:
    """Authenticates and reconciles inbound signature provider callbacks."""

    def __init__(self, db: Session, provider: SignatureProvider):
        self.db = db
        self.provider = provider
        self.repository = ApprovalRepository(db)

    def receive(self, headers: Mapping[str, HeaderValue], raw_body: bytes) -> WebhookOutcome:
        """
        Process one webhook delivery.

        Returns:
            401 if authentication fails, 400 for a malformed payload,
            202 for an unknown envelope, 200 once reconciled.
        """
        if not self.provider.validate_webhook(headers, raw_body):
            logger.warning("Rejected signature webhook: authentication failed")
            return WebhookOutcome.from_error(AuthenticationFailedError())

        try:
            payload = json.loads(raw_body or b"null")
            event = self.provider.parse_webhook_event(payload)
        except ValueError as e:
            logger.warning(f"Rejected signature webhook: malformed JSON body ({e})")
            return WebhookOutcome.from_error(MalformedWebhookPayloadError("Invalid payload"))
        except MalformedWebhookPayloadError as e:
            logger.warning(f"Rejected signature webhook: {e.message}")
            return WebhookOutcome.from_error(e)

        approval = self.repository.get_by_envelope_id(event.envelope_id)
        if not approval:
            logger.warning(f"Signature webhook received for unknown envelope {event.envelope_id}")
            return WebhookOutcome(202, "Approval not found", envelope_id=event.envelope_id)

        approval = self.repository.merge_signature(approval.id, event)
        logger.info(
            f"Signature webhook reconciled approval {approval.id} "
            f"(envelope {event.envelope_id}, signature {approval.signature_status})"
        )
        return WebhookOutcome(200, "Acknowledged", approval_id=approval.id, envelope_id=event.envelope_id)
