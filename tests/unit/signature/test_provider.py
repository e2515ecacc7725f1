"""Tests for the signature provider adapter."""

import hashlib
import hmac
import json
from datetime import datetime

import httpx
import pytest

from signoff.core.errors import (
    ErrorKind,
    NotConfiguredError,
    ProviderRequestFailedError,
    MalformedProviderResponseError,
    MalformedWebhookPayloadError,
)
from signoff.signature import (
    SignatureProvider,
    SignatureStatus,
    SignerInfo,
    EnvelopePayload,
    normalize_status,
    resolve_signing_url,
)

from tests.factories import WEBHOOK_SECRET

ENVELOPES_URL = "https://signature.test/api/accounts/acct-1/envelopes"


def _provider(settings, handler) -> SignatureProvider:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return SignatureProvider(settings, client=client)


def _sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class TestNormalizeStatus:
    """Test vendor status vocabulary mapping."""

    @pytest.mark.parametrize("vendor_status", ["created", "pending", "draft"])
    def test_pending_synonyms(self, vendor_status):
        assert normalize_status(vendor_status) == SignatureStatus.PENDING

    @pytest.mark.parametrize("vendor_status", ["sent", "delivered", "in_process", "in-progress"])
    def test_sent_synonyms(self, vendor_status):
        assert normalize_status(vendor_status) == SignatureStatus.SENT

    @pytest.mark.parametrize("vendor_status", ["completed", "signed", "finished", "completed_successfully"])
    def test_signed_synonyms(self, vendor_status):
        assert normalize_status(vendor_status) == SignatureStatus.SIGNED

    @pytest.mark.parametrize(
        "vendor_status",
        ["declined", "rejected", "voided", "terminated", "cancelled", "canceled"],
    )
    def test_rejected_synonyms(self, vendor_status):
        assert normalize_status(vendor_status) == SignatureStatus.REJECTED

    def test_case_insensitive(self):
        assert normalize_status("COMPLETED") == SignatureStatus.SIGNED
        assert normalize_status("Delivered") == SignatureStatus.SENT

    @pytest.mark.parametrize("vendor_status", ["", "archived", "signed-ish", "expired"])
    def test_unknown_defaults_to_pending(self, vendor_status):
        assert normalize_status(vendor_status) == SignatureStatus.PENDING

    def test_available_on_provider(self):
        assert SignatureProvider.normalize_status("voided") == SignatureStatus.REJECTED


class TestResolveSigningUrl:
    """Test the signing URL fallback chain."""

    def test_direct_field_wins(self):
        payload = EnvelopePayload.model_validate({
            "status": "sent",
            "signingUrl": "https://sign.example.com/direct",
            "signingUrls": [{"url": "https://sign.example.com/list"}],
            "links": [{"rel": "signing_url", "href": "https://sign.example.com/link"}],
        })
        assert resolve_signing_url(payload) == "https://sign.example.com/direct"

    def test_first_list_entry(self):
        payload = EnvelopePayload.model_validate({
            "status": "sent",
            "signingUrls": [
                {"url": "https://sign.example.com/first"},
                {"url": "https://sign.example.com/second"},
            ],
        })
        assert resolve_signing_url(payload) == "https://sign.example.com/first"

    def test_links_filtered_by_rel(self):
        payload = EnvelopePayload.model_validate({
            "status": "sent",
            "links": [
                {"rel": "self", "href": "https://api.example.com/envelopes/1"},
                {"rel": "SIGNING_URL", "href": "https://sign.example.com/link"},
            ],
        })
        assert resolve_signing_url(payload) == "https://sign.example.com/link"

    def test_none_when_absent(self):
        payload = EnvelopePayload.model_validate({
            "status": "sent",
            "links": [{"rel": "self", "href": "https://api.example.com/envelopes/1"}],
        })
        assert resolve_signing_url(payload) is None


class TestValidateWebhook:
    """Test inbound webhook authentication."""

    body = b'{"envelopeId": "env-1", "status": "completed"}'

    def test_shared_secret_header(self, provider):
        assert provider.validate_webhook({"x-signature-secret": WEBHOOK_SECRET}, self.body)

    def test_alternate_secret_header(self, provider):
        assert provider.validate_webhook({"X-Webhook-Secret": WEBHOOK_SECRET}, self.body)

    def test_multi_valued_secret_header(self, provider):
        headers = {"x-webhook-secret": ["something-else", WEBHOOK_SECRET]}
        assert provider.validate_webhook(headers, self.body)

    def test_wrong_secret(self, provider):
        assert not provider.validate_webhook({"x-signature-secret": "nope"}, self.body)

    def test_no_auth_headers(self, provider):
        assert not provider.validate_webhook({"content-type": "application/json"}, self.body)

    def test_valid_hmac(self, provider):
        headers = {"x-signature-hmac": _sign(self.body)}
        assert provider.validate_webhook(headers, self.body)

    @pytest.mark.parametrize("header", ["x-docusign-signature-01", "x-adobesign-signature-01"])
    def test_vendor_hmac_headers(self, provider, header):
        assert provider.validate_webhook({header: _sign(self.body)}, self.body)

    def test_hmac_hex_case_ignored(self, provider):
        headers = {"x-signature-hmac": _sign(self.body).upper()}
        assert provider.validate_webhook(headers, self.body)

    def test_hmac_mismatch(self, provider):
        headers = {"x-signature-hmac": _sign(self.body, secret="other-secret")}
        assert not provider.validate_webhook(headers, self.body)

    def test_hmac_over_tampered_body(self, provider):
        headers = {"x-signature-hmac": _sign(self.body)}
        tampered = self.body.replace(b"completed", b"declined")
        assert not provider.validate_webhook(headers, tampered)

    def test_fails_closed_without_secret(self, unconfigured_settings):
        provider = SignatureProvider(unconfigured_settings)
        body = b"{}"
        assert not provider.validate_webhook({"x-signature-secret": ""}, body)
        assert not provider.validate_webhook({"x-signature-hmac": _sign(body, secret="")}, body)


class TestParseWebhookEvent:
    """Test webhook payload parsing."""

    def test_full_event(self, provider):
        event = provider.parse_webhook_event({
            "envelopeId": "env-1",
            "documentId": "doc-1",
            "status": "completed",
            "completedAt": "2024-01-02T12:00:00Z",
            "signingUrls": [{"url": "https://sign.example.com/s/1"}],
        })
        assert event.envelope_id == "env-1"
        assert event.document_id == "doc-1"
        assert event.status == SignatureStatus.SIGNED
        assert event.completed_at == datetime(2024, 1, 2, 12, 0, 0)
        assert event.signing_url == "https://sign.example.com/s/1"
        assert event.sent_at is None

    def test_id_fallback_and_nested_timestamps(self, provider):
        event = provider.parse_webhook_event({
            "id": "env-2",
            "status": "declined",
            "timestamps": {"declinedAt": "2024-03-01T08:30:00+02:00"},
        })
        assert event.envelope_id == "env-2"
        assert event.status == SignatureStatus.REJECTED
        assert event.declined_at == datetime(2024, 3, 1, 6, 30, 0)

    def test_top_level_timestamp_preferred(self, provider):
        event = provider.parse_webhook_event({
            "envelopeId": "env-3",
            "status": "sent",
            "sentAt": "2024-01-01T10:00:00Z",
            "timestamps": {"sentAt": "2023-12-31T10:00:00Z"},
        })
        assert event.sent_at == datetime(2024, 1, 1, 10, 0, 0)

    def test_missing_status(self, provider):
        with pytest.raises(MalformedWebhookPayloadError) as exc_info:
            provider.parse_webhook_event({"envelopeId": "env-1"})
        assert exc_info.value.kind == ErrorKind.MALFORMED_WEBHOOK_PAYLOAD

    def test_missing_envelope_id(self, provider):
        with pytest.raises(MalformedWebhookPayloadError):
            provider.parse_webhook_event({"status": "completed"})

    def test_not_an_object(self, provider):
        with pytest.raises(MalformedWebhookPayloadError):
            provider.parse_webhook_event(["env-1", "completed"])


class TestCreateEnvelope:
    """Test envelope creation against a mocked provider API."""

    signer = SignerInfo(name="María Firmas", email="maria@example.com")

    def test_request_shape_and_mapping(self, settings):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["method"] = request.method
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(201, json={
                "envelopeId": "env-123",
                "documentId": "doc-9",
                "status": "SENT",
                "links": [{"rel": "signing_url", "href": "https://sign.example.com/s/env-123"}],
                "timestamps": {"sentAt": "2024-01-01T00:00:00Z"},
            })

        provider = _provider(settings, handler)
        envelope = provider.create_envelope(
            title="Scope change",
            document_template_id="tpl-123",
            signer=self.signer,
            callback_url="https://signoff.test/api/signatures/webhook",
            redirect_url="https://signoff.test/done",
            project_id=7,
        )

        assert captured["method"] == "POST"
        assert captured["url"] == ENVELOPES_URL
        assert captured["auth"] == "Bearer test-token"
        assert captured["body"] == {
            "title": "Scope change",
            "templateId": "tpl-123",
            "signer": {"name": "María Firmas", "email": "maria@example.com"},
            "callbackUrl": "https://signoff.test/api/signatures/webhook",
            "redirectUrl": "https://signoff.test/done",
            "metadata": {"projectId": 7},
        }
        assert envelope.envelope_id == "env-123"
        assert envelope.document_id == "doc-9"
        assert envelope.status == SignatureStatus.SENT
        assert envelope.signing_url == "https://sign.example.com/s/env-123"
        assert envelope.sent_at == datetime(2024, 1, 1, 0, 0, 0)

    def test_not_configured(self, unconfigured_settings):
        def handler(request):
            raise AssertionError("provider must not be called")

        provider = _provider(unconfigured_settings, handler)
        with pytest.raises(NotConfiguredError):
            provider.create_envelope("t", "tpl", self.signer, "https://cb")

    def test_non_success_status(self, settings):
        provider = _provider(settings, lambda request: httpx.Response(422, json={"error": "bad template"}))
        with pytest.raises(ProviderRequestFailedError) as exc_info:
            provider.create_envelope("t", "tpl", self.signer, "https://cb")
        assert exc_info.value.status_code == 422
        assert exc_info.value.retryable

    def test_server_error_not_retried(self, settings):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        provider = _provider(settings, handler)
        with pytest.raises(ProviderRequestFailedError):
            provider.create_envelope("t", "tpl", self.signer, "https://cb")
        assert len(calls) == 1

    def test_missing_envelope_id(self, settings):
        provider = _provider(settings, lambda request: httpx.Response(200, json={"status": "sent"}))
        with pytest.raises(MalformedProviderResponseError):
            provider.create_envelope("t", "tpl", self.signer, "https://cb")

    def test_non_json_body(self, settings):
        provider = _provider(settings, lambda request: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(MalformedProviderResponseError):
            provider.create_envelope("t", "tpl", self.signer, "https://cb")


class TestGetEnvelopeStatus:
    """Test envelope status lookup."""

    def test_fetch_and_path_id_fallback(self, settings):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json={"status": "completed", "completedAt": "2024-01-02T12:00:00Z"})

        provider = _provider(settings, handler)
        envelope = provider.get_envelope_status("env-123")

        assert seen == [f"{ENVELOPES_URL}/env-123"]
        assert envelope.envelope_id == "env-123"
        assert envelope.status == SignatureStatus.SIGNED
        assert envelope.completed_at == datetime(2024, 1, 2, 12, 0, 0)

    def test_retries_once_on_transport_error(self, settings):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"envelopeId": "env-1", "status": "sent"})

        provider = _provider(settings, handler)
        envelope = provider.get_envelope_status("env-1")
        assert envelope.status == SignatureStatus.SENT
        assert len(calls) == 2

    def test_gives_up_after_one_retry(self, settings):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(502)

        provider = _provider(settings, handler)
        with pytest.raises(ProviderRequestFailedError) as exc_info:
            provider.get_envelope_status("env-1")
        assert exc_info.value.status_code == 502
        assert len(calls) == 2

    def test_client_error_not_retried(self, settings):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        provider = _provider(settings, handler)
        with pytest.raises(ProviderRequestFailedError) as exc_info:
            provider.get_envelope_status("env-1")
        assert exc_info.value.status_code == 404
        assert len(calls) == 1

    def test_timeout_surfaces_as_request_failure(self, settings):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        provider = _provider(settings, handler)
        with pytest.raises(ProviderRequestFailedError) as exc_info:
            provider.get_envelope_status("env-1")
        assert exc_info.value.status_code is None

    def test_not_configured(self, unconfigured_settings):
        provider = SignatureProvider(unconfigured_settings)
        with pytest.raises(NotConfiguredError):
            provider.get_envelope_status("env-1")
