"""Approval state machine implementation.

Validates decision transitions against the transition table and the
signature gate. Persistence lives in ``ApprovalService``.
"""

from datetime import datetime
from typing import Optional, Dict, Any

from signoff.core.errors import InvalidStatusTransitionError, SignatureNotCompletedError
from signoff.signature.schemas import SignatureStatus
from .states import (
    ApprovalStatus,
    TransitionRule,
    can_transition,
    get_transition_rule,
    TERMINAL_STATUSES,
)


class ApprovalStateMachine:
    """
    State machine for one approval's decision.

    Manages:
    - Validation of the PENDING → APPROVED | REJECTED table
    - The signature gate on APPROVED
    - A record of the decision for audit logging
    """

    def __init__(self, approval_id: int, current_status: ApprovalStatus):
        self.approval_id = approval_id
        self._status = current_status
        self._last_transition: Optional[Dict[str, Any]] = None

    @property
    def status(self) -> ApprovalStatus:
        return self._status

    @property
    def is_terminal(self) -> bool:
        return self._status in TERMINAL_STATUSES

    @property
    def last_transition(self) -> Optional[Dict[str, Any]]:
        return self._last_transition

    def requires_signature_check(self, to_status: ApprovalStatus) -> bool:
        """Whether moving to ``to_status`` needs a confirmed signature."""
        rule = get_transition_rule(self._status, to_status)
        return bool(rule and rule.requires_signature)

    def validate(self, to_status: ApprovalStatus) -> TransitionRule:
        """
        Check that ``to_status`` is reachable from the current status.

        Raises:
            InvalidStatusTransitionError: If the pair is outside the table
        """
        if not can_transition(self._status, to_status):
            raise InvalidStatusTransitionError(self._status.value, to_status.value)
        return get_transition_rule(self._status, to_status)

    def transition(
        self,
        to_status: ApprovalStatus,
        *,
        user_id: int,
        signature_status: Optional[SignatureStatus] = None,
        comment: Optional[str] = None,
    ) -> ApprovalStatus:
        """
        Perform a decision transition.

        Args:
            to_status: Requested decision
            user_id: Deciding actor
            signature_status: Freshly refreshed signature status, required
                when the rule demands a signature
            comment: Optional decision comment

        Raises:
            InvalidStatusTransitionError: If the transition is invalid
            SignatureNotCompletedError: If the signature gate is not met
        """
        rule = self.validate(to_status)

        if rule.requires_signature and signature_status != rule.requires_signature:
            current = signature_status.value if signature_status else "unknown"
            raise SignatureNotCompletedError(current)

        self._last_transition = {
            "approval_id": self.approval_id,
            "from_status": self._status.value,
            "to_status": to_status.value,
            "user_id": user_id,
            "comment": comment,
            "signature_status": signature_status.value if signature_status else None,
            "timestamp": datetime.utcnow(),
        }
        self._status = to_status
        return self._status
