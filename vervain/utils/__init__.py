"""Shared helpers for Vervain."""
