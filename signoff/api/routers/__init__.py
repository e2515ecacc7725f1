"""API routers for signoff."""

from . import approvals
from . import signatures
from . import health

__all__ = [
    "approvals",
    "signatures",
    "health",
]
