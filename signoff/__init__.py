"""Signoff: approval decisions gated on external electronic signatures."""

__version__ = "0.1.0"
