from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from blamels import server
from blamels.blame import BlameQuery, resolve
from blamels.config import ServerSettings, load_settings
from blamels.exceptions import Declined
from blamels.logs import configure_logging
from blamels.vfs import OverlayFileSystem

app = typer.Typer(add_completion=False)


def _settings(config: Optional[Path], log_level: Optional[str]) -> ServerSettings:
    overrides = {"log_level": log_level} if log_level else {}
    try:
        return load_settings(config_path=config, overrides=overrides)
    except ValidationError as exc:
        typer.echo(f"Invalid configuration: {exc}", err=True)
        raise typer.Exit(code=2)


@app.command()
def serve(
    config: Optional[Path] = typer.Option(None, "--config", help="Path to blamels.toml."),
    log_level: Optional[str] = typer.Option(None, "--log-level"),
) -> None:
    """Run the language server over stdio."""
    settings = _settings(config, log_level)
    configure_logging(settings)
    raise typer.Exit(code=server.start(settings))


@app.command()
def blame(
    path: Path = typer.Argument(..., help="File to blame."),
    line: int = typer.Argument(..., min=0, help="Zero-indexed line number."),
    config: Optional[Path] = typer.Option(None, "--config", help="Path to blamels.toml."),
) -> None:
    """Print the attribution for one line, as a hover would show it."""
    settings = _settings(config, None)
    configure_logging(settings)
    query = BlameQuery(path=str(path.resolve()), line=line)
    try:
        text = resolve(
            query,
            fs=OverlayFileSystem(),
            uncommitted_text=settings.uncommitted_text,
            window_seconds=settings.relative_window_seconds,
        )
    except Declined as exc:
        typer.echo(f"No blame available: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(text)
