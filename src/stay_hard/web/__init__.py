"""JSON API for stay-hard."""

from .app import create_app

__all__ = ["create_app"]
