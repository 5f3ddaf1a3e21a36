# zendesk_export/__init__.py
"""Zendesk Support account export to local JSON files."""

__version__ = "1.0.0"
