"""CLI entry point for prscribe.

Commands:
  load       fetch a pull request into the session cache
  show       print one cached session
  sessions   list cached sessions
  recent     list recently viewed sessions
  remove     evict sessions and their chat transcripts
  checklist  generate a review checklist for one file
  check      tick a checklist item off (or back on)
  chat       discuss one file with the model (streamed), or reset it
  summary    stream a summary of the whole pull request
  login      store API keys / GitHub token
"""

from __future__ import annotations

import asyncio
import importlib.metadata
import logging

import click
from rich.logging import RichHandler

from prscribe_cli.commands.login import login_cmd
from prscribe_cli.commands.review import chat_cmd, check_cmd, checklist_cmd, summary_cmd
from prscribe_cli.commands.sessions import load_cmd, recent_cmd, remove_cmd, sessions_cmd, show_cmd
from prscribe_cli.context import console


def setup_logging(verbose: bool) -> None:
    """Route log records through rich; DEBUG with --verbose, WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=verbose, show_path=False)],
        force=True,
    )
    # SDK transports are chatty at DEBUG.
    for noisy in ("httpx", "httpcore", "openai", "anthropic", "urllib3", "github"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _build_store(config: dict):
    """Instantiate the configured key-value store from .prscribe.yml settings.

    Store selection:
      store: json   → JsonFileKeyValueStore (default, store_path)
      store: sqlite → SQLiteKeyValueStore   (store_path or ~/.prscribe/cache.db)
      store: memory → MemoryKeyValueStore   (nothing persisted; useful for dry runs)

    This factory lives in cli.py so neither prscribe_core nor prscribe_store
    know about the CLI config format.
    """
    store_type = config.get("store", "json")

    if store_type == "sqlite":
        from prscribe_store.sqlite import SQLiteKeyValueStore

        path = config.get("store_path") or "~/.prscribe/cache.db"
        if path.endswith(".json"):
            path = path[: -len(".json")] + ".db"
        return SQLiteKeyValueStore(db_path=path)

    if store_type == "memory":
        from prscribe_store.memory import MemoryKeyValueStore

        return MemoryKeyValueStore()

    if store_type != "json":
        console.print(f"[yellow]Unknown store {store_type!r}; using the JSON file store.[/yellow]")

    from prscribe_store.json_file import JsonFileKeyValueStore

    return JsonFileKeyValueStore(path=config.get("store_path") or "~/.prscribe/cache.json")


@click.group()
@click.version_option(
    version=importlib.metadata.version("prscribe"),
    prog_name="prscribe",
)
@click.option(
    "--config",
    "config_path",
    default=".prscribe.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRSCRIBE_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Cache pull requests locally and review them with AI checklists and chat."""
    from prscribe_core.config import load_config
    from prscribe_store.cache import ReviewCacheService
    from prscribe_store.credentials import CredentialStore

    setup_logging(verbose)
    ctx.ensure_object(dict)

    try:
        config = load_config(config_path)
    except ValueError as e:
        raise click.UsageError(str(e))

    store = _build_store(config)
    ctx.obj["config"] = config
    ctx.obj["store"] = store
    ctx.obj["cache"] = ReviewCacheService.from_store(
        store,
        cache_cap=config["cache_cap"],
        recency_cap=config["recency_cap"],
    )
    ctx.obj["credentials"] = CredentialStore(store)
    ctx.call_on_close(lambda: asyncio.run(store.close()))


main.add_command(load_cmd)
main.add_command(show_cmd)
main.add_command(sessions_cmd)
main.add_command(recent_cmd)
main.add_command(remove_cmd)
main.add_command(checklist_cmd)
main.add_command(check_cmd)
main.add_command(chat_cmd)
main.add_command(summary_cmd)
main.add_command(login_cmd)
