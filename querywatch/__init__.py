"""QueryWatch: query-log monitoring for columnar analytical databases."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("querywatch")
except PackageNotFoundError:
    # Package is not installed, use fallback
    __version__ = "0.0.0.dev"


def __getattr__(name):
    """Lazy import of cli_app to avoid circular imports."""
    if name == "cli_app":
        from querywatch.cli import app as cli_app

        return cli_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["__version__", "cli_app"]
