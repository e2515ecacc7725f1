"""Project access checks for approval operations.

- Admins can access every project.
- Other users need a membership on the project.
- The read-only ``client`` role can view approvals but never create or decide them.
"""

from sqlalchemy import and_
from sqlalchemy.orm import Session

from signoff.core.errors import PermissionDeniedError, ProjectNotFoundError
from signoff.db.models import Project, ProjectMembership, User, UserRole

READ_ONLY_ROLES = {UserRole.CLIENT.value}


def ensure_project_access(db: Session, project_id: int, actor: User) -> Project:
    """
    Check that ``actor`` may access ``project_id``.

    Raises:
        ProjectNotFoundError: If the project does not exist
        PermissionDeniedError: If the actor is not a member
    """
    project = db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise ProjectNotFoundError(project_id)

    if actor.role == UserRole.ADMIN.value:
        return project

    membership = db.query(ProjectMembership).filter(
        and_(
            ProjectMembership.project_id == project_id,
            ProjectMembership.user_id == actor.id,
        )
    ).first()
    if not membership:
        raise PermissionDeniedError()
    return project


def ensure_can_mutate(db: Session, project_id: int, actor: User) -> Project:
    """Project access plus a role that may create or decide approvals."""
    project = ensure_project_access(db, project_id, actor)
    if actor.role in READ_ONLY_ROLES:
        raise PermissionDeniedError()
    return project


def can_view_signature_url(actor: User) -> bool:
    """Only the signing party (the client) is handed the signing URL."""
    return actor.role == UserRole.CLIENT.value
