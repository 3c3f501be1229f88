"""
CLI interface for memo synchronization.

Usage:
    memosync init --vault ~/notes
    memosync sync --vault ~/notes
    memosync watch --vault ~/notes --interval 30
    memosync config --vault ~/notes
"""

import signal
import sys
import threading
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .config import CONFIG_FILENAME, SyncConfig, load_config, load_or_create_config
from .errors import log_exception
from .logging_config import configure_cli_logging
from .storage import LocalStorage
from .sync import MemoSync, SyncResult
from .types import SyncSession

app = typer.Typer(
    name="memosync",
    help="Mirror Memos notes into a local Markdown vault.",
    no_args_is_help=True,
    rich_markup_mode=None,
)

VaultOption = Annotated[Path, typer.Option(
    "--vault", "-d",
    help="Vault directory the sync root lives in",
    file_okay=False,
)]
ConfigOption = Annotated[Optional[Path], typer.Option(
    "--config", "-c",
    help=f"Directory containing {CONFIG_FILENAME} (default: the vault)",
    file_okay=False,
)]
VerboseOption = Annotated[bool, typer.Option(
    "--verbose", "-v",
    help="Debug logging to stderr",
)]


def _mask(secret: str) -> str:
    if not secret:
        return "(not set)"
    if len(secret) <= 8:
        return "****"
    return f"{secret[:4]}…{secret[-4:]}"


def _load(vault: Path, config_dir: Optional[Path]) -> SyncConfig:
    directory = (config_dir or vault).expanduser()
    try:
        return load_config(directory)
    except FileNotFoundError:
        typer.echo(
            f"No {CONFIG_FILENAME} in {directory}. Run 'memosync init' first.", err=True
        )
        raise typer.Exit(1)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _print_progress(session: SyncSession, message: str) -> None:
    if message:
        typer.echo(message, err=True)
    elif session.discovered:
        done = session.processed + session.skipped + session.failed
        typer.echo(
            f"\r  {done}/{session.discovered} ({session.elapsed_seconds:.0f}s)",
            err=True, nl=False,
        )
        if done == session.discovered:
            typer.echo("", err=True)


def _report(result: SyncResult) -> None:
    typer.echo(result.message, err=not result.ok)


@app.command()
def init(
    vault: VaultOption = Path("."),
    config_dir: ConfigOption = None,
):
    """Write a default config file."""
    directory = (config_dir or vault).expanduser()
    config = load_or_create_config(directory)
    typer.echo(f"Config: {config.config_path}")


@app.command("config")
def show_config(
    vault: VaultOption = Path("."),
    config_dir: ConfigOption = None,
):
    """Show the effective configuration (secrets masked)."""
    config = _load(vault, config_dir)
    ai = config.ai
    typer.echo(f"config:         {config.config_path}")
    typer.echo(f"api_url:        {config.api_url or '(not set)'}")
    typer.echo(f"access_token:   {_mask(config.access_token)}")
    typer.echo(f"sync root:      {vault.expanduser() / config.sync_root}")
    typer.echo(f"sync_limit:     {config.sync_limit}")
    typer.echo(f"frequency:      {config.frequency} ({config.interval_minutes} min)")
    typer.echo(f"ai:             {'enabled' if ai.enabled else 'disabled'}")
    if ai.enabled:
        provider = ai.provider_config
        typer.echo(f"  provider:     {provider.name}")
        for key, value in sorted(provider.params.items()):
            shown = _mask(str(value)) if "key" in key else value
            typer.echo(f"  {key + ':':<13} {shown}")
        typer.echo(f"  summary:      {ai.summary} ({ai.summary_language})")
        typer.echo(f"  tags:         {ai.tags}")
        typer.echo(f"  digest:       {ai.weekly_digest}")


@app.command()
def sync(
    vault: VaultOption = Path("."),
    config_dir: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """Run one sync pass."""
    configure_cli_logging(verbose)
    config = _load(vault, config_dir)
    syncer = MemoSync(
        config, LocalStorage(vault.expanduser()),
        verbose=verbose, progress=_print_progress,
    )
    try:
        result = syncer.run()
    except Exception as e:
        log_path = log_exception(e, "memosync sync")
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise typer.Exit(1)
    _report(result)
    if not result.ok:
        raise typer.Exit(1)


@app.command()
def watch(
    vault: VaultOption = Path("."),
    config_dir: ConfigOption = None,
    interval: Annotated[Optional[int], typer.Option(
        "--interval", "-i",
        help="Minutes between runs (default: interval_minutes from config)",
        min=1,
    )] = None,
    verbose: VerboseOption = False,
):
    """Sync now and then periodically until interrupted."""
    configure_cli_logging(verbose)
    config = _load(vault, config_dir)
    minutes = interval or config.interval_minutes
    syncer = MemoSync(
        config, LocalStorage(vault.expanduser()),
        verbose=verbose, progress=_print_progress,
    )

    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    typer.echo(f"Syncing every {minutes} min; Ctrl-C to stop", err=True)
    syncer.run_periodic(minutes * 60, stop, on_result=_report)


def main():
    try:
        app()
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
