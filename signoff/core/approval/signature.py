"""Rules for merging provider envelope state into an approval.

Shared by the webhook handler and the live refresh so that both writers apply
identical, idempotent semantics:

- ``signature_envelope_id`` is never patched (it is the correlation key).
- Each other mirrored field is overwritten only by a non-null incoming value.
- The mirrored status never moves backwards (see ``is_signature_progression``).
"""

import logging
from typing import Dict, Any

from signoff.db.models import Approval
from signoff.signature.schemas import SignatureEnvelope, SignatureStatus
from .states import is_signature_progression

logger = logging.getLogger(__name__)


# envelope attribute -> approval column
MIRRORED_FIELDS = {
    "document_id": "signature_document_id",
    "signing_url": "signature_url",
    "sent_at": "signature_sent_at",
    "completed_at": "signature_completed_at",
    "declined_at": "signature_declined_at",
}


def build_signature_patch(
    approval: Approval,
    envelope: SignatureEnvelope,
    *,
    authoritative: bool = False,
) -> Dict[str, Any]:
    """Return the column values that change when ``envelope`` is merged.

    An empty dict means the event carries nothing new (e.g. a replay).
    ``authoritative`` envelopes come from a live lookup the caller is about
    to act on; their status replaces the stored one unconditionally.
    """
    patch: Dict[str, Any] = {}

    current_status = SignatureStatus(approval.signature_status)
    if envelope.status != current_status:
        if authoritative or is_signature_progression(current_status, envelope.status):
            patch["signature_status"] = envelope.status.value
        else:
            logger.info(
                f"Ignoring stale signature status {envelope.status.value} for approval "
                f"{approval.id} (stored: {current_status.value})"
            )

    for source, column in MIRRORED_FIELDS.items():
        value = getattr(envelope, source)
        if value is not None and value != getattr(approval, column):
            patch[column] = value

    return patch
