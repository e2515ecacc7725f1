"""Error taxonomy for the signoff engine.

Every failure the engine surfaces is a ``SignoffError`` subclass carrying a
machine-checkable ``kind``. Callers branch on ``kind`` (or the class), never on
the message text.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Closed set of failure kinds."""

    NOT_CONFIGURED = "not_configured"
    PROVIDER_REQUEST_FAILED = "provider_request_failed"
    MALFORMED_PROVIDER_RESPONSE = "malformed_provider_response"
    MALFORMED_WEBHOOK_PAYLOAD = "malformed_webhook_payload"
    AUTHENTICATION_FAILED = "authentication_failed"
    PERMISSION_DENIED = "permission_denied"
    PROJECT_NOT_FOUND = "project_not_found"
    APPROVAL_NOT_FOUND = "approval_not_found"
    INVALID_STATUS_TRANSITION = "invalid_status_transition"
    UNABLE_TO_REFRESH_SIGNATURE_STATUS = "unable_to_refresh_signature_status"
    SIGNATURE_NOT_COMPLETED = "signature_not_completed"
    CONCURRENT_MODIFICATION = "concurrent_modification"


class SignoffError(Exception):
    """Base class for all engine errors."""

    kind: ErrorKind
    http_status: int = 400
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotConfiguredError(SignoffError):
    """Raised when provider credentials or the webhook secret are missing."""

    kind = ErrorKind.NOT_CONFIGURED
    http_status = 503

    def __init__(self, message: str = "Signature provider is not properly configured"):
        super().__init__(message)


class ProviderRequestFailedError(SignoffError):
    """Raised on a non-success response (or no response) from the provider."""

    kind = ErrorKind.PROVIDER_REQUEST_FAILED
    http_status = 502
    retryable = True

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedProviderResponseError(SignoffError):
    kind = ErrorKind.MALFORMED_PROVIDER_RESPONSE
    http_status = 502


class MalformedWebhookPayloadError(SignoffError):
    kind = ErrorKind.MALFORMED_WEBHOOK_PAYLOAD
    http_status = 400


class AuthenticationFailedError(SignoffError):
    kind = ErrorKind.AUTHENTICATION_FAILED
    http_status = 401

    def __init__(self, message: str = "Invalid signature"):
        super().__init__(message)


class PermissionDeniedError(SignoffError):
    kind = ErrorKind.PERMISSION_DENIED
    http_status = 403

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message)


class ProjectNotFoundError(SignoffError):
    kind = ErrorKind.PROJECT_NOT_FOUND
    http_status = 404

    def __init__(self, project_id: int):
        super().__init__(f"Project {project_id} not found")
        self.project_id = project_id


class ApprovalNotFoundError(SignoffError):
    kind = ErrorKind.APPROVAL_NOT_FOUND
    http_status = 404

    def __init__(self, approval_id: int):
        super().__init__(f"Approval {approval_id} not found")
        self.approval_id = approval_id


class InvalidStatusTransitionError(SignoffError):
    """Raised when a transition falls outside the allowed table."""

    kind = ErrorKind.INVALID_STATUS_TRANSITION
    http_status = 409

    def __init__(self, from_status: str, to_status: str):
        super().__init__(f"Cannot transition approval from {from_status} to {to_status}")
        self.from_status = from_status
        self.to_status = to_status


class UnableToRefreshSignatureStatusError(SignoffError):
    """The provider could not be reached to confirm the signature status."""

    kind = ErrorKind.UNABLE_TO_REFRESH_SIGNATURE_STATUS
    http_status = 503
    retryable = True

    def __init__(self, message: str = "Unable to refresh signature status", cause: Optional[SignoffError] = None):
        super().__init__(message)
        self.cause = cause


class SignatureNotCompletedError(SignoffError):
    """The provider confirmed the signature is not yet complete."""

    kind = ErrorKind.SIGNATURE_NOT_COMPLETED
    http_status = 409

    def __init__(self, signature_status: str):
        super().__init__(
            f"Cannot approve until the signature is completed (current status: {signature_status})"
        )
        self.signature_status = signature_status


class ConcurrentModificationError(SignoffError):
    kind = ErrorKind.CONCURRENT_MODIFICATION
    http_status = 409
    retryable = True
