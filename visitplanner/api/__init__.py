"""
HTTP layer - the public booking endpoint and schedule view.
"""

from .app import create_app

__all__ = ["create_app"]
