"""Signature provider adapter.

Translates between the engine and the external e-signature provider.
"""

from .schemas import SignatureStatus, SignatureEnvelope, SignerInfo, EnvelopePayload
from .provider import SignatureProvider, normalize_status, resolve_signing_url

__all__ = [
    "SignatureStatus",
    "SignatureEnvelope",
    "SignerInfo",
    "EnvelopePayload",
    "SignatureProvider",
    "normalize_status",
    "resolve_signing_url",
]
