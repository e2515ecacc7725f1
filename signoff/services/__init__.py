"""Services for signoff."""

from signoff.services.webhook import SignatureWebhookHandler, WebhookOutcome

__all__ = [
    "SignatureWebhookHandler",
    "WebhookOutcome",
]
