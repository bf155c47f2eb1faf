"""login command: store API keys and a GitHub token in the credential store."""

from __future__ import annotations

import click

from prscribe_core.providers.factory import PROVIDERS, api_key_name

from prscribe_cli.auth import GITHUB_TOKEN_NAME
from prscribe_cli.context import console, run


@click.command("login")
@click.argument("provider", type=click.Choice(sorted(PROVIDERS) + ["github"]))
@click.option("--clear", is_flag=True, help="Forget the stored secret instead of setting it.")
@click.pass_context
def login_cmd(ctx, provider: str, clear: bool):
    """Save the API key for PROVIDER (or a GitHub token) for later runs.

    Environment variables still take precedence over stored values.
    """
    credentials = ctx.obj["credentials"]
    name = GITHUB_TOKEN_NAME if provider == "github" else api_key_name(provider)

    if clear:
        run(credentials.clear(name))
        console.print(f"[green]Removed stored credential for {provider}.[/green]")
        return

    secret = click.prompt(f"{provider} secret", hide_input=True).strip()
    if not secret:
        raise click.UsageError("Secret must not be empty.")
    run(credentials.set(name, secret))
    console.print(f"[green]Saved credential for {provider}.[/green]")
