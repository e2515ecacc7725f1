"""Canonical signature model and the tolerant provider payload schema.

Provider responses and webhook events come in several shapes (``envelopeId`` or
``id``, three places a signing URL may live, timestamps top-level or nested).
``EnvelopePayload`` accepts all of them; ``SignatureEnvelope`` is the single
canonical shape the rest of the engine sees.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class SignatureStatus(str, Enum):
    """Lifecycle of an envelope at the provider."""

    PENDING = "pending"
    SENT = "sent"
    SIGNED = "signed"
    REJECTED = "rejected"


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class SignerInfo(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr


class SigningUrlEntry(BaseModel):
    url: str


class EnvelopeLink(BaseModel):
    rel: str
    href: str


class EnvelopeTimestamps(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sent_at: Optional[datetime] = Field(default=None, alias="sentAt")
    completed_at: Optional[datetime] = Field(default=None, alias="completedAt")
    declined_at: Optional[datetime] = Field(default=None, alias="declinedAt")


class EnvelopePayload(BaseModel):
    """Tolerant schema shared by API responses and webhook events."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    envelope_id: Optional[str] = Field(default=None, alias="envelopeId")
    id: Optional[str] = None
    document_id: Optional[str] = Field(default=None, alias="documentId")
    signing_url: Optional[str] = Field(default=None, alias="signingUrl")
    signing_urls: Optional[List[SigningUrlEntry]] = Field(default=None, alias="signingUrls")
    links: Optional[List[EnvelopeLink]] = None
    status: str
    sent_at: Optional[datetime] = Field(default=None, alias="sentAt")
    completed_at: Optional[datetime] = Field(default=None, alias="completedAt")
    declined_at: Optional[datetime] = Field(default=None, alias="declinedAt")
    timestamps: Optional[EnvelopeTimestamps] = None

    @field_validator("id", "envelope_id", "document_id", mode="before")
    @classmethod
    def _coerce_identifier(cls, value):
        # Some providers send numeric ids
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def resolved_envelope_id(self) -> Optional[str]:
        return self.envelope_id or self.id or None


class SignatureEnvelope(BaseModel):
    """Canonical envelope state, as mirrored onto an approval."""

    envelope_id: str
    document_id: Optional[str] = None
    signing_url: Optional[str] = None
    status: SignatureStatus
    sent_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None
