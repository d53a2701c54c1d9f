"""Messenger webhook ingestion and rule-based auto-reply service."""

from .__version__ import __version__

__all__ = ["__version__"]
