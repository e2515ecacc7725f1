from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey

from signoff.db.base import Base


class AuditLog(Base):
    """Append-only record of approval lifecycle events."""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String(100), nullable=False, index=True)
    extra_data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    def __repr__(self) -> str:
        return f"<AuditLog {self.action}>"
