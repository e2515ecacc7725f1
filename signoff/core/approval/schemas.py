"""Request payloads accepted by the approval service."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, AnyHttpUrl

from signoff.signature.schemas import SignerInfo
from .states import ApprovalStatus


class ApprovalCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=3, max_length=255)
    description: Optional[str] = None
    document_template_id: str = Field(min_length=1, alias="documentTemplateId")
    signer: SignerInfo
    redirect_url: Optional[AnyHttpUrl] = Field(default=None, alias="redirectUrl")


class ApprovalTransitionRequest(BaseModel):
    status: ApprovalStatus
    comment: Optional[str] = None
