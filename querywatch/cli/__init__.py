"""CLI module for QueryWatch."""

from querywatch.cli import api, logs, store
from querywatch.cli.main import app, main_cli

__all__ = [
    "app",
    "main_cli",
    "api",
    "logs",
    "store",
]
