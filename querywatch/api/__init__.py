"""QueryWatch HTTP API."""

from querywatch.api.app import create_app

__all__ = ["create_app"]
