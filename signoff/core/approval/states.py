"""Approval decision states and transitions.

State Machine Diagram:

    ┌──────────┐
    │ PENDING  │ ← Initial state (envelope created with the provider)
    └────┬─────┘
         │
         ├─────────────────────┐
         │                     │
    ┌────▼─────┐         ┌─────▼────┐
    │ APPROVED │         │ REJECTED │
    └──────────┘         └──────────┘

APPROVED additionally requires the envelope to be confirmed SIGNED by a
live provider lookup at decision time.

The envelope has its own lifecycle (see ``SignatureStatus``):

    PENDING ─► SENT ─► SIGNED | REJECTED

Signature statuses are ranked so that a late delivery can never move the
mirrored status backwards.
"""

from enum import Enum
from typing import Set, Dict, NamedTuple, Optional

from signoff.signature.schemas import SignatureStatus


class ApprovalStatus(str, Enum):
    """Decision states of an approval."""

    PENDING = "pending"      # Awaiting signature and decision
    APPROVED = "approved"    # Signed and approved
    REJECTED = "rejected"    # Rejected by an authorized actor


class TransitionRule(NamedTuple):
    """Defines a valid decision transition."""
    from_status: ApprovalStatus
    to_status: ApprovalStatus
    requires_signature: Optional[SignatureStatus] = None


TRANSITION_RULES: list[TransitionRule] = [
    TransitionRule(ApprovalStatus.PENDING, ApprovalStatus.APPROVED, requires_signature=SignatureStatus.SIGNED),
    TransitionRule(ApprovalStatus.PENDING, ApprovalStatus.REJECTED),
]

# Build lookup tables
ALLOWED_TRANSITIONS: Dict[ApprovalStatus, Set[ApprovalStatus]] = {status: set() for status in ApprovalStatus}
TRANSITION_TARGETS: Dict[tuple[ApprovalStatus, ApprovalStatus], TransitionRule] = {}

for rule in TRANSITION_RULES:
    ALLOWED_TRANSITIONS[rule.from_status].add(rule.to_status)
    TRANSITION_TARGETS[(rule.from_status, rule.to_status)] = rule


TERMINAL_STATUSES: Set[ApprovalStatus] = {
    ApprovalStatus.APPROVED,
    ApprovalStatus.REJECTED,
}

TERMINAL_SIGNATURE_STATUSES: Set[SignatureStatus] = {
    SignatureStatus.SIGNED,
    SignatureStatus.REJECTED,
}

SIGNATURE_STATUS_RANK: Dict[SignatureStatus, int] = {
    SignatureStatus.PENDING: 0,
    SignatureStatus.SENT: 1,
    SignatureStatus.SIGNED: 2,
    SignatureStatus.REJECTED: 2,
}


def can_transition(from_status: ApprovalStatus, to_status: ApprovalStatus) -> bool:
    """Check if a decision transition is in the allowed table."""
    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def get_transition_rule(from_status: ApprovalStatus, to_status: ApprovalStatus) -> Optional[TransitionRule]:
    return TRANSITION_TARGETS.get((from_status, to_status))


def is_signature_progression(current: SignatureStatus, incoming: SignatureStatus) -> bool:
    """True if moving the mirrored signature status from current to incoming is allowed.

    Terminal signature statuses never change; otherwise the rank must not drop.
    """
    if current == incoming:
        return True
    if current in TERMINAL_SIGNATURE_STATUSES:
        return False
    return SIGNATURE_STATUS_RANK[incoming] >= SIGNATURE_STATUS_RANK[current]
