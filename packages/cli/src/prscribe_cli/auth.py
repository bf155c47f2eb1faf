"""GitHub token resolution with gh CLI and stored-credential fallbacks.

Resolution order (stops at first success):
  1. GITHUB_TOKEN environment variable (CI / explicit override)
  2. `gh auth token` (GitHub CLI session, works after `gh auth login`)
  3. the token saved by `prscribe login github`
"""

from __future__ import annotations

import asyncio
import logging
import os
import subprocess

from prscribe_store.credentials import CredentialStore

logger = logging.getLogger(__name__)

GITHUB_TOKEN_NAME = "github_token"


def gh_cli_token() -> str | None:
    """Return the token of the current `gh` session, or None."""
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        # gh is not installed or timed out.
        return None
    if result.returncode != 0:
        return None
    token = result.stdout.strip()
    if token:
        logger.debug("Resolved GitHub token via gh CLI session.")
    return token or None


async def resolve_github_token(credentials: CredentialStore | None = None) -> str | None:
    """Return a GitHub token or None if no source has one.

    Never raises for a missing token. Public repositories still work
    anonymously, so callers decide whether None is fatal.
    """
    token = os.environ.get("GITHUB_TOKEN")
    if token:
        return token

    token = await asyncio.to_thread(gh_cli_token)
    if token:
        return token

    if credentials is not None:
        token = await credentials.get(GITHUB_TOKEN_NAME)
        if token:
            logger.debug("Resolved GitHub token from the credential store.")
    return token
