"""Vervain: email impersonation detection."""

__version__ = "0.3.0"
