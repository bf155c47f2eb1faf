"""Shared plumbing for commands: building services and running coroutines.

Error kinds are turned into short messages here; the core never carries
user-facing prose beyond the kind tag.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal as signals
from typing import Any, Coroutine

import click
from rich.console import Console

from prscribe_core.errors import ErrorKind, InvalidInputError, PRScribeError
from prscribe_core.gh.pull_request import GitHubClient
from prscribe_core.identifiers import SessionIdentifier, from_repo, parse_pr_url
from prscribe_core.loader import SessionLoader
from prscribe_core.orchestrator import AIOrchestrationService
from prscribe_core.providers.factory import make_client_factory
from prscribe_store.cache import ReviewCacheService
from prscribe_store.credentials import CredentialStore
from prscribe_store.exceptions import IncompatibleStoreError, StoreError

from prscribe_cli.auth import resolve_github_token

logger = logging.getLogger(__name__)

console = Console()

ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.INVALID_INPUT: "Invalid input",
    ErrorKind.SERVICE_UNAVAILABLE: "The AI service is unavailable",
    ErrorKind.MALFORMED_RESPONSE: "The model returned an unexpected response",
    ErrorKind.ABORTED: "Cancelled",
    ErrorKind.NOT_FOUND: "Not found",
}


def run(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run ``coro`` to completion, mapping known errors to ClickException."""
    try:
        return asyncio.run(coro)
    except PRScribeError as e:
        raise click.ClickException(f"{ERROR_MESSAGES[e.kind]}: {e}")
    except IncompatibleStoreError as e:
        raise click.ClickException(
            f"The cache was written by an incompatible version ({e.detail}). "
            "Point store_path at a new file or upgrade prscribe."
        )
    except StoreError as e:
        raise click.ClickException(f"Cache error: {e}")


def resolve_identifier(config: dict, repo: str | None, pr_number: int | None, url: str | None) -> SessionIdentifier:
    if not url and (not repo or pr_number is None):
        raise click.UsageError("Pass --url, or both --repo and --pr.")
    try:
        if url:
            return parse_pr_url(url)
        return from_repo(repo, pr_number, domain=config.get("github_domain", "github.com"))
    except InvalidInputError as e:
        raise click.UsageError(f"{ERROR_MESSAGES[e.kind]}: {e}")


def pr_options(func):
    """Attach the --repo / --pr / --url options shared by session commands."""
    func = click.option("--url", default=None, help="Pull request URL (alternative to --repo/--pr).")(func)
    func = click.option("--pr", "pr_number", type=int, default=None, help="Pull request number.")(func)
    func = click.option("--repo", default=None, help="GitHub repository in owner/name format.")(func)
    return func


async def build_loader(obj: dict) -> SessionLoader:
    """Wire the cache, GitHub client and orchestrator from ``ctx.obj``."""
    config: dict = obj["config"]
    credentials: CredentialStore = obj["credentials"]
    cache: ReviewCacheService = obj["cache"]

    token = config.get("github_token") or await resolve_github_token(credentials)
    if not token:
        logger.warning("No GitHub token found; using anonymous access.")

    provider = config.get("model", "openai")
    return SessionLoader(
        cache=cache,
        github=GitHubClient(token, base_url=config.get("github_api_url")),
        orchestrator=AIOrchestrationService(make_client_factory(config, credentials)),
        instruction_path=config.get("instruction_path"),
        model_name=(config.get("models") or {}).get(provider, provider),
    )


@contextlib.asynccontextmanager
async def loader_session(obj: dict):
    """Yield a SessionLoader and close its GitHub client afterwards."""
    loader = await build_loader(obj)
    try:
        yield loader
    finally:
        loader.close()


@contextlib.contextmanager
def abort_on_interrupt(abort: asyncio.Event):
    """Turn Ctrl-C into ``abort.set()`` for the duration of a stream."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signals.SIGINT, abort.set)
        installed = True
    except (NotImplementedError, RuntimeError, ValueError):
        # No loop signal support here; Ctrl-C raises KeyboardInterrupt instead.
        installed = False
    try:
        yield
    finally:
        if installed:
            loop.remove_signal_handler(signals.SIGINT)


def print_token(token: str) -> None:
    console.print(token, end="", markup=False, highlight=False, soft_wrap=True)
