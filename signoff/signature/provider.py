"""Signature provider adapter.

Sole boundary with the external e-signature provider. Handles:
- Envelope creation and status lookup over the provider HTTP API
- Normalizing vendor status vocabularies to ``SignatureStatus``
- Authenticating inbound webhooks (shared secret or HMAC-SHA256)
- Parsing webhook events into the canonical ``SignatureEnvelope``
"""

import hashlib
import hmac
import logging
from typing import Optional, Dict, Any, Mapping, Sequence, Union
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from signoff.core.config import Settings, get_settings
from signoff.core.errors import (
    NotConfiguredError,
    ProviderRequestFailedError,
    MalformedProviderResponseError,
    MalformedWebhookPayloadError,
)
from .schemas import (
    EnvelopePayload,
    SignatureEnvelope,
    SignatureStatus,
    SignerInfo,
    to_naive_utc,
)

logger = logging.getLogger(__name__)


# Vendor vocabularies, matched case-insensitively
STATUS_SYNONYMS: Dict[SignatureStatus, frozenset] = {
    SignatureStatus.PENDING: frozenset({"created", "pending", "draft"}),
    SignatureStatus.SENT: frozenset({"sent", "delivered", "in_process", "in-progress"}),
    SignatureStatus.SIGNED: frozenset({"completed", "signed", "finished", "completed_successfully"}),
    SignatureStatus.REJECTED: frozenset({
        "declined", "rejected", "voided", "terminated", "cancelled", "canceled",
    }),
}

SECRET_HEADERS = ("x-signature-secret", "x-webhook-secret")
HMAC_HEADERS = ("x-signature-hmac", "x-docusign-signature-01", "x-adobesign-signature-01")

SIGNING_URL_REL = "signing_url"

HeaderValue = Union[str, Sequence[str]]


def normalize_status(vendor_status: str) -> SignatureStatus:
    """Map a free-text vendor status onto the canonical four states.

    Unrecognized values fall back to PENDING.
    """
    normalized = (vendor_status or "").strip().lower()
    for status, synonyms in STATUS_SYNONYMS.items():
        if normalized in synonyms:
            return status
    return SignatureStatus.PENDING


def resolve_signing_url(payload: EnvelopePayload) -> Optional[str]:
    """Find the signing URL: direct field, then ``signingUrls``, then ``links``."""
    if payload.signing_url:
        return payload.signing_url
    if payload.signing_urls:
        return payload.signing_urls[0].url
    for link in payload.links or []:
        if link.rel.lower() == SIGNING_URL_REL:
            return link.href
    return None


def _header_values(headers: Mapping[str, HeaderValue], names: Sequence[str]) -> list[str]:
    """Collect values of the first present header among ``names``."""
    lowered = {str(key).lower(): value for key, value in headers.items()}
    for name in names:
        value = lowered.get(name)
        if value is None:
            continue
        if isinstance(value, (str, bytes)):
            values = [value]
        else:
            values = list(value)
        return [v.decode() if isinstance(v, bytes) else str(v) for v in values]
    return []


class SignatureProvider:
    """
    Client for the external e-signature provider.

    The HTTP client is created lazily unless one is injected; tests pass a
    client built on ``httpx.MockTransport``.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        client: Optional[httpx.Client] = None,
    ):
        self.settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None

    normalize_status = staticmethod(normalize_status)
    resolve_signing_url = staticmethod(resolve_signing_url)

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.settings.signature_timeout)
        return self._client

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "SignatureProvider":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Outbound API
    # ------------------------------------------------------------------

    def create_envelope(
        self,
        title: str,
        document_template_id: str,
        signer: SignerInfo,
        callback_url: str,
        redirect_url: Optional[str] = None,
        project_id: Optional[int] = None,
    ) -> SignatureEnvelope:
        """
        Create a signing envelope from a document template.

        Never retried: a blind retry would create a duplicate envelope.

        Raises:
            NotConfiguredError: Provider credentials missing
            ProviderRequestFailedError: Non-success response or transport failure
            MalformedProviderResponseError: Response lacks an envelope identifier
        """
        self._ensure_configured()
        body: Dict[str, Any] = {
            "title": title,
            "templateId": document_template_id,
            "signer": {"name": signer.name, "email": signer.email},
            "callbackUrl": callback_url,
            "metadata": {},
        }
        if redirect_url:
            body["redirectUrl"] = redirect_url
        if project_id is not None:
            body["metadata"]["projectId"] = project_id

        try:
            response = self.client.post(self._envelopes_url(), json=body, headers=self._build_headers())
        except httpx.HTTPError as e:
            logger.error(f"Signature envelope creation failed: {e}")
            raise ProviderRequestFailedError(f"Failed to create signature envelope: {e}") from e

        if not response.is_success:
            message = f"Failed to create signature envelope: {response.status_code}"
            logger.error(message)
            raise ProviderRequestFailedError(message, status_code=response.status_code)

        return self._map_response(self._parse_response(response))

    def get_envelope_status(self, envelope_id: str) -> SignatureEnvelope:
        """
        Fetch the current state of an envelope.

        Transport errors and 5xx responses are retried at most once
        (disabled when ``signature_read_retries`` is 0).
        """
        self._ensure_configured()
        url = f"{self._envelopes_url()}/{quote(envelope_id, safe='')}"
        attempts = 1 + min(1, max(0, self.settings.signature_read_retries))

        response = None
        for attempt in range(1, attempts + 1):
            try:
                response = self.client.get(url, headers=self._build_headers())
            except httpx.HTTPError as e:
                logger.warning(
                    f"Signature envelope {envelope_id} lookup failed (attempt {attempt}/{attempts}): {e}"
                )
                if attempt == attempts:
                    raise ProviderRequestFailedError(
                        f"Failed to fetch signature envelope: {e}"
                    ) from e
                continue

            if response.status_code >= 500 and attempt < attempts:
                logger.warning(
                    f"Signature envelope {envelope_id} lookup returned {response.status_code}, retrying"
                )
                continue
            break

        if not response.is_success:
            message = f"Failed to fetch signature envelope: {response.status_code}"
            logger.error(f"{message} (envelope {envelope_id})")
            raise ProviderRequestFailedError(message, status_code=response.status_code)

        payload = self._parse_response(response)
        if not payload.resolved_envelope_id:
            payload.envelope_id = envelope_id
        return self._map_response(payload)

    # ------------------------------------------------------------------
    # Inbound webhooks
    # ------------------------------------------------------------------

    def validate_webhook(self, headers: Mapping[str, HeaderValue], raw_body: bytes) -> bool:
        """
        Authenticate an inbound webhook.

        Accepts either a shared-secret header equal to the configured secret,
        or an HMAC-SHA256 hex digest of the raw body. Fails closed when no
        secret is configured.
        """
        secret = self.settings.signature_webhook_secret
        if not secret:
            return False

        for value in _header_values(headers, SECRET_HEADERS):
            if hmac.compare_digest(value.encode(), secret.encode()):
                return True

        signatures = _header_values(headers, HMAC_HEADERS)
        if not signatures:
            return False

        if isinstance(raw_body, str):
            raw_body = raw_body.encode()
        expected = hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()
        return any(
            hmac.compare_digest(signature.strip().lower().encode(), expected.encode())
            for signature in signatures
        )

    def parse_webhook_event(self, payload: Any) -> SignatureEnvelope:
        """Validate a webhook payload and map it onto ``SignatureEnvelope``."""
        try:
            parsed = EnvelopePayload.model_validate(payload)
        except ValidationError as e:
            raise MalformedWebhookPayloadError(f"Invalid webhook payload: {e.error_count()} error(s)") from e

        if not parsed.resolved_envelope_id:
            raise MalformedWebhookPayloadError("Webhook payload missing envelope identifier")
        return self._map_response(parsed)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _ensure_configured(self) -> None:
        if not self.settings.signature_configured:
            raise NotConfiguredError()

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.signature_api_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _envelopes_url(self) -> str:
        base_url = self.settings.signature_api_base_url.rstrip("/")
        account_id = quote(self.settings.signature_account_id, safe="")
        return f"{base_url}/accounts/{account_id}/envelopes"

    def _parse_response(self, response: httpx.Response) -> EnvelopePayload:
        try:
            return EnvelopePayload.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"Signature provider returned an unexpected payload: {e}")
            raise MalformedProviderResponseError(
                "Signature provider response did not match the expected schema"
            ) from e

    def _map_response(self, payload: EnvelopePayload) -> SignatureEnvelope:
        envelope_id = payload.resolved_envelope_id
        if not envelope_id:
            raise MalformedProviderResponseError(
                "Signature provider response missing envelope identifier"
            )

        timestamps = payload.timestamps
        sent_at = payload.sent_at or (timestamps.sent_at if timestamps else None)
        completed_at = payload.completed_at or (timestamps.completed_at if timestamps else None)
        declined_at = payload.declined_at or (timestamps.declined_at if timestamps else None)

        return SignatureEnvelope(
            envelope_id=envelope_id,
            document_id=payload.document_id,
            signing_url=resolve_signing_url(payload),
            status=normalize_status(payload.status),
            sent_at=to_naive_utc(sent_at),
            completed_at=to_naive_utc(completed_at),
            declined_at=to_naive_utc(declined_at),
        )
