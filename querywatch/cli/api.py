"""API server CLI commands for QueryWatch."""

from typing import Optional

import httpx
import typer

from querywatch.api.server import run_server
from querywatch.cli.output import console, exit_with_error, print_dict, print_success
from querywatch.config import get_settings

app = typer.Typer(help="API server management")


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(
        None, "--host", "-h", help="Bind address (default: QUERYWATCH_HOST)"
    ),
    port: Optional[int] = typer.Option(
        None, "--port", "-p", help="Port (default: QUERYWATCH_PORT)"
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-w", help="Worker processes (default: QUERYWATCH_WORKERS)"
    ),
    reload: bool = typer.Option(False, "--reload", "-r", help="Auto-reload on code changes"),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", "-l", help="uvicorn log level (default: LOG_LEVEL)"
    ),
    access_log: bool = typer.Option(
        True, "--access-log/--no-access-log", help="Enable/disable access logging"
    ),
) -> None:
    """Start the QueryWatch API server.

    Examples:
        querywatch api serve

        querywatch api serve --port 9000 --workers 4

        querywatch api serve --reload
    """
    settings = get_settings()
    run_server(
        host=host or settings.querywatch_host,
        port=port or settings.querywatch_port,
        workers=workers or settings.querywatch_workers,
        reload=reload,
        log_level=log_level,
        access_log=access_log,
    )


@app.command("status")
def status(
    host: str = typer.Option("localhost", "--host", "-h", help="API server host"),
    port: Optional[int] = typer.Option(
        None, "--port", "-p", help="API server port (default: QUERYWATCH_PORT)"
    ),
) -> None:
    """Check liveness and log store readiness of a running server.

    Example:
        querywatch api status --port 9000
    """
    base_url = f"http://{host}:{port or get_settings().querywatch_port}"
    console.print(f"[blue]Checking API server at {base_url}...[/blue]")

    try:
        health = httpx.get(f"{base_url}/health", timeout=5.0)
        ready = httpx.get(f"{base_url}/health/ready", timeout=5.0)
    except httpx.ConnectError:
        exit_with_error(f"Cannot connect to API server at {base_url}. Is it running?")
    except httpx.TimeoutException:
        exit_with_error(f"Connection timeout to {base_url}")

    if health.status_code != 200:
        exit_with_error(f"Server responded with status {health.status_code}")

    data = health.json()
    print_success("API server is running")
    print_dict(
        {
            "Status": data.get("status", "unknown"),
            "Version": data.get("version", "unknown"),
            "Timestamp": data.get("timestamp", "unknown"),
        }
    )

    if ready.status_code != 200:
        exit_with_error(f"Log store: {ready.json().get('message', 'unavailable')}")
    print_success("Log store ready")
