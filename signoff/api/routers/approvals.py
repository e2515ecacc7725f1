"""Approval API endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from signoff.api.deps import get_current_user, get_approval_service
from signoff.api.schemas.approval import ApprovalResponse, ErrorResponse
from signoff.core.approval import ApprovalService, ApprovalStatus
from signoff.core.approval.schemas import ApprovalCreate, ApprovalTransitionRequest
from signoff.core.errors import SignoffError
from signoff.db.models import User

router = APIRouter(
    prefix="/projects/{project_id}/approvals",
    tags=["approvals"],
    responses={
        code: {"model": ErrorResponse}
        for code in (403, 404, 409, 502, 503)
    },
)


@router.get("", response_model=List[ApprovalResponse])
def list_approvals(
    project_id: int,
    status_filter: Optional[ApprovalStatus] = Query(None, alias="status"),
    service: ApprovalService = Depends(get_approval_service),
    current_user: User = Depends(get_current_user),
):
    """List approvals for a project, optionally filtered by decision status."""
    return service.list_approvals(project_id, current_user, status=status_filter)


@router.post("", response_model=ApprovalResponse, status_code=status.HTTP_201_CREATED)
def create_approval(
    project_id: int,
    payload: ApprovalCreate,
    service: ApprovalService = Depends(get_approval_service),
    current_user: User = Depends(get_current_user),
):
    """Request sign-off; creates the signature envelope with the provider."""
    try:
        result = service.create_approval(project_id, payload, current_user)
        service.db.commit()
    except SignoffError:
        service.db.rollback()
        raise
    return result


@router.get("/{approval_id}", response_model=ApprovalResponse)
def get_approval(
    project_id: int,
    approval_id: int,
    service: ApprovalService = Depends(get_approval_service),
    current_user: User = Depends(get_current_user),
):
    """Get a specific approval."""
    return service.get_approval(project_id, approval_id, current_user)


@router.patch("/{approval_id}", response_model=ApprovalResponse)
def transition_approval(
    project_id: int,
    approval_id: int,
    payload: ApprovalTransitionRequest,
    service: ApprovalService = Depends(get_approval_service),
    current_user: User = Depends(get_current_user),
):
    """Approve or reject a pending approval."""
    try:
        result = service.transition_approval(project_id, approval_id, payload, current_user)
        service.db.commit()
    except SignoffError:
        service.db.rollback()
        raise
    return result


@router.post("/{approval_id}/refresh", response_model=ApprovalResponse)
def refresh_signature_status(
    project_id: int,
    approval_id: int,
    service: ApprovalService = Depends(get_approval_service),
    current_user: User = Depends(get_current_user),
):
    """Refresh the mirrored signature state from the provider."""
    try:
        result = service.refresh_signature_status(project_id, approval_id, current_user)
        service.db.commit()
    except SignoffError:
        service.db.rollback()
        raise
    return result
