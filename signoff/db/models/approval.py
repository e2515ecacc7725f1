"""Approval model.

One row per approval request, carrying both the decision state and the
mirrored state of the external signature envelope.
"""

from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, CheckConstraint
from sqlalchemy.orm import relationship

from signoff.db.base import Base


class Approval(Base):
    """
    Sign-off request on a project scope or document change.

    ``signature_envelope_id`` is the correlation key used by provider
    webhooks and never changes once set. ``version`` increments on every
    write and guards concurrent read-modify-write cycles.
    """
    __tablename__ = "approvals"
    __table_args__ = (
        CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_approvals_status"),
        CheckConstraint(
            "signature_status IN ('pending', 'sent', 'signed', 'rejected')",
            name="ck_approvals_signature_status",
        ),
        CheckConstraint(
            "(status = 'pending' AND decided_at IS NULL AND decided_by_id IS NULL) OR "
            "(status != 'pending' AND decided_at IS NOT NULL AND decided_by_id IS NOT NULL)",
            name="ck_approvals_decision_consistent",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Decision state
    status = Column(String(20), nullable=False, default="pending", index=True)
    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    decided_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    decided_at = Column(DateTime, nullable=True)

    # Mirrored signature state
    signature_envelope_id = Column(String(255), nullable=False, unique=True, index=True)
    signature_document_id = Column(String(255), nullable=True)
    signature_url = Column(Text, nullable=True)
    signature_status = Column(String(20), nullable=False, default="pending")
    signature_sent_at = Column(DateTime, nullable=True)
    signature_completed_at = Column(DateTime, nullable=True)
    signature_declined_at = Column(DateTime, nullable=True)

    # Optimistic concurrency stamp
    version = Column(Integer, nullable=False, default=1)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project")
    creator = relationship("User", foreign_keys=[created_by_id])
    decider = relationship("User", foreign_keys=[decided_by_id])

    def __repr__(self) -> str:
        return f"<Approval {self.id} {self.title!r} [{self.status}/{self.signature_status}]>"
