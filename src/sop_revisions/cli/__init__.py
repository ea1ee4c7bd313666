"""
Command-line interface for SOP revisions.
"""

from .app import app

__all__ = ["app"]
