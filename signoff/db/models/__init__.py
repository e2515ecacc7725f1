"""Database models for signoff."""

from signoff.db.models.user import User, UserRole
from signoff.db.models.project import Project, ProjectMembership
from signoff.db.models.approval import Approval
from signoff.db.models.audit import AuditLog

__all__ = [
    "User",
    "UserRole",
    "Project",
    "ProjectMembership",
    "Approval",
    "AuditLog",
]
