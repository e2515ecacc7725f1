"""Approval API schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ApprovalResponse(BaseModel):
    id: int
    project_id: int
    title: str
    description: Optional[str]
    status: str
    created_by_id: Optional[int]
    decided_by_id: Optional[int]
    decided_at: Optional[datetime]
    signature_envelope_id: str
    signature_document_id: Optional[str]
    signature_url: Optional[str]
    signature_status: str
    signature_sent_at: Optional[datetime]
    signature_completed_at: Optional[datetime]
    signature_declined_at: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class ErrorResponse(BaseModel):
    detail: str
    kind: str
    retryable: bool = False


class WebhookResponse(BaseModel):
    message: str
    kind: Optional[str] = None
