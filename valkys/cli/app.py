"""Typer-based CLI wiring."""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from valkys import __version__
from valkys.core.config import ConfigManager, ValkysSettings, apply_overrides
from valkys.store.client import connect
from valkys.utils.errors import ConfigurationError, StartupError
from valkys.utils.logging import configure_logging, get_logger, level_for_verbosity

logger = get_logger(__name__)

app = typer.Typer(help="Terminal dashboard for Redis and Valkey", add_completion=False)
err_console = Console(stderr=True)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"valkys {__version__}")
        raise typer.Exit()


async def _serve(
    manager: ConfigManager,
    *,
    host: Optional[str],
    port: Optional[int],
    password: Optional[str],
    db: Optional[int],
) -> None:
    from valkys.ui_tui import launch_tui

    settings: ValkysSettings = await manager.load()
    settings = apply_overrides(settings, host=host, port=port, password=password, db=db)
    logger.info("settings loaded", extra={"path": str(manager.config_path)})
    client = await asyncio.to_thread(connect, settings.redis)
    await launch_tui(client, settings, config_manager=manager)


@app.command()
def main(
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Server host (overrides the config file)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Server port"),
    password: Optional[str] = typer.Option(None, "--password", "-a", help="Server password"),
    db: Optional[int] = typer.Option(None, "--db", "-n", help="Database number"),
    verbose: int = typer.Option(
        1, "--verbose", "-v", min=0, max=4, clamp=True, help="Log verbosity: 0 error .. 4 trace"
    ),
    console: bool = typer.Option(False, "--console", help="Mirror logs on stderr"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to the configuration file"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version and exit"
    ),
) -> None:
    """Launch the dashboard."""

    log_path = configure_logging(level=level_for_verbosity(verbose), console=console)
    logger.debug("logging to %s", log_path)
    manager = ConfigManager(config)
    try:
        asyncio.run(
            _serve(
                manager,
                host=host,
                port=port,
                password=password,
                db=db,
            )
        )
    except (ConfigurationError, StartupError) as exc:
        logger.error("startup failed: %s", exc)
        err_console.print(f"[bold red]Error:[/] {exc}")
        raise typer.Exit(code=1) from exc


__all__ = ["app", "main"]
