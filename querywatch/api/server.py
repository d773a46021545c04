"""QueryWatch API server entry point.

``python -m querywatch.api.server`` and ``querywatch api serve`` both end
up in ``run_server``, which prints a startup banner and hands over to
uvicorn.
"""

import logging
from typing import Any, Optional

import click
import uvicorn

from querywatch.config import get_settings

logger = logging.getLogger(__name__)

APP_IMPORT_PATH = "querywatch.api.app:app"


def build_uvicorn_config(
    host: str,
    port: int,
    workers: int,
    reload: bool,
    log_level: str,
    access_log: bool,
) -> dict[str, Any]:
    """Keyword arguments for ``uvicorn.run``; reload implies a single worker."""
    config: dict[str, Any] = {
        "app": APP_IMPORT_PATH,
        "host": host,
        "port": port,
        "log_level": log_level,
        "access_log": access_log,
    }
    if reload:
        config["reload"] = True
    else:
        config["workers"] = workers
    return config


def run_server(
    host: str,
    port: int,
    workers: int = 1,
    reload: bool = False,
    log_level: Optional[str] = None,
    access_log: bool = True,
) -> None:
    """Run uvicorn until interrupted."""
    settings = get_settings()
    level = (log_level or settings.log_level).lower()

    if reload and workers > 1:
        click.secho("Warning: --reload runs a single worker; ignoring --workers.", fg="yellow")
        workers = 1

    public_host = "localhost" if host == "0.0.0.0" else host
    if reload:
        mode = "development (auto-reload)"
    else:
        mode = f"{workers} worker{'s' if workers > 1 else ''}"

    click.secho("\nQueryWatch API\n", fg="cyan", bold=True)
    for label, value in (
        ("Listen", f"{host}:{port}"),
        ("Mode", mode),
        ("Log level", level),
        ("Log store", f"{settings.store_path} (table {settings.query_log_table})"),
        ("Docs", f"http://{public_host}:{port}/docs"),
        ("Health", f"http://{public_host}:{port}/health/ready"),
    ):
        click.echo(f"  {label + ':':<12}{value}")
    click.echo()

    logger.info("Starting API server", extra={"host": host, "port": port, "workers": workers})

    try:
        uvicorn.run(**build_uvicorn_config(host, port, workers, reload, level, access_log))
    except KeyboardInterrupt:
        click.secho("\nServer stopped\n", fg="green")


@click.command()
@click.option("--host", default=None, help="Bind address (default: QUERYWATCH_HOST)")
@click.option("--port", default=None, type=int, help="Port (default: QUERYWATCH_PORT)")
@click.option("--workers", default=None, type=int, help="Worker processes")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
@click.option(
    "--log-level",
    type=click.Choice(
        ["debug", "info", "warning", "error", "critical"], case_sensitive=False
    ),
    help="Logging level (overrides config)",
)
@click.option("--access-log/--no-access-log", default=True, show_default=True)
def serve(
    host: Optional[str],
    port: Optional[int],
    workers: Optional[int],
    reload: bool,
    log_level: Optional[str],
    access_log: bool,
):
    """Start the QueryWatch API server."""
    settings = get_settings()
    run_server(
        host=host or settings.querywatch_host,
        port=port or settings.querywatch_port,
        workers=workers or settings.querywatch_workers,
        reload=reload,
        log_level=log_level,
        access_log=access_log,
    )


if __name__ == "__main__":
    serve()
