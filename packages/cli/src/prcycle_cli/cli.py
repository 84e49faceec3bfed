"""CLI entry point for prcycle.

Commands:
  collect   — fetch PR snapshots from GitHub into the configured store
  report    — cycle-time table for every PR stored on a date
  timeline  — reconstructed timeline and validation issues for one PR
  dates     — list the dates that hold snapshots for a repository
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from prcycle_cli.commands.collect import collect_cmd
from prcycle_cli.commands.dates import dates_cmd
from prcycle_cli.commands.report import report_cmd
from prcycle_cli.commands.timeline import timeline_cmd

console = Console()


def _build_store(config: dict):
    """Instantiate the configured store from .prcycle.yml settings.

    Store selection hierarchy:
      store: json   → JsonDirStore (uses data_dir, default ./data)
      store: sqlite → SQLiteStore  (requires store_path or uses .prcycle.db)
      (default)     → NoOpStore    (no persistence)

    This factory lives in cli.py so neither prcycle_core nor prcycle_store
    know about the CLI config format.
    """
    from prcycle_store.noop import NoOpStore

    store_type = config.get("store", "noop")

    if store_type == "json":
        from prcycle_store.jsonfile import JsonDirStore

        return JsonDirStore(data_dir=config.get("data_dir", "data"))

    if store_type == "sqlite":
        from prcycle_store.sqlite import SQLiteStore

        db_path = config.get("store_path", ".prcycle.db")
        return SQLiteStore(db_path=db_path)

    if store_type != "noop":
        console.print(f"[yellow]Unknown store '{store_type}'. Falling back to no store.[/yellow]")
    return NoOpStore()


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=verbose)],
        force=True,
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("prcycle"),
    prog_name="prcycle",
)
@click.option(
    "--config",
    "config_path",
    default=".prcycle.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRCYCLE_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Pull request timeline reconstruction and cycle-time metrics."""
    from prcycle_cli.auth import resolve_github_token
    from prcycle_core.config import load_config

    _configure_logging(verbose)
    ctx.ensure_object(dict)

    config = load_config(config_path)

    # Resolve token early so all subcommands share the same resolution.
    token = resolve_github_token()
    if token:
        config["github_token"] = token

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.call_on_close(store.close)


main.add_command(collect_cmd)
main.add_command(report_cmd)
main.add_command(timeline_cmd)
main.add_command(dates_cmd)
