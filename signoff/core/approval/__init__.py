"""Approval workflow module for signoff.

Implements the approval decision state machine and its signature gate.
"""

from .states import ApprovalStatus, ALLOWED_TRANSITIONS, TERMINAL_STATUSES
from .machine import ApprovalStateMachine
from .repository import ApprovalRepository
from .service import ApprovalService

__all__ = [
    "ApprovalStatus",
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATUSES",
    "ApprovalStateMachine",
    "ApprovalRepository",
    "ApprovalService",
]
