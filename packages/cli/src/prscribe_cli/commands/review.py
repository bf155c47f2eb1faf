"""AI commands: per-file checklists, per-file chat and PR summaries."""

from __future__ import annotations

import asyncio

import click

from prscribe_core.errors import AbortedError
from prscribe_core.loader import INTERRUPTED_MARKER

from prscribe_cli.context import (
    abort_on_interrupt,
    console,
    loader_session,
    pr_options,
    print_token,
    resolve_identifier,
    run,
)


def _language(ctx, language: str | None) -> str:
    return language or ctx.obj["config"].get("language", "en")


def _item_mark(checked: bool) -> str:
    return "[green]✔[/green]" if checked else "[yellow]○[/yellow]"


language_option = click.option(
    "--language",
    type=click.Choice(["en", "ja", "ko", "zh"]),
    default=None,
    help="Response language. Overrides config file.",
)


@click.command("checklist")
@pr_options
@click.option("--file", "filename", required=True, help="Changed file to build a checklist for.")
@language_option
@click.pass_context
def checklist_cmd(ctx, repo, pr_number, url, filename: str, language: str | None):
    """Generate a review checklist for one changed file."""
    identifier = resolve_identifier(ctx.obj["config"], repo, pr_number, url)

    async def _generate():
        async with loader_session(ctx.obj) as loader:
            return await loader.generate_checklist(identifier, filename, _language(ctx, language))

    with console.status(f"Generating checklist for {filename}..."):
        checklist = run(_generate())

    console.print(f"\n[bold]{checklist.filename}[/bold]")
    console.print(checklist.explanation, markup=False)
    for item in checklist.items:
        console.print(f"  {_item_mark(item.is_checked)} [dim]{item.id}[/dim] {item.description}", highlight=False)


@click.command("check")
@pr_options
@click.option("--file", "filename", required=True, help="File whose checklist holds the item.")
@click.argument("item_id")
@click.pass_context
def check_cmd(ctx, repo, pr_number, url, filename: str, item_id: str):
    """Tick checklist item ITEM_ID off, or untick it if it is already done."""
    identifier = resolve_identifier(ctx.obj["config"], repo, pr_number, url)

    async def _toggle():
        async with loader_session(ctx.obj) as loader:
            return await loader.toggle_item(identifier, filename, item_id)

    item = run(_toggle())
    state = "done" if item.is_checked else "open"
    console.print(f"{_item_mark(item.is_checked)} {item.description} [dim]({state})[/dim]", highlight=False)


@click.command("chat")
@pr_options
@click.option("--file", "filename", default=None, help="Changed file the question is about.")
@click.option("--reset", is_flag=True, help="Forget the discussion of --file, or of every file without it.")
@click.argument("message", required=False)
@language_option
@click.pass_context
def chat_cmd(ctx, repo, pr_number, url, filename: str | None, reset: bool, message: str | None, language: str | None):
    """Ask MESSAGE about one file; the reply streams and is saved to its transcript.

    Press Ctrl-C to stop the reply; the partial text is kept and marked as
    interrupted.
    """
    identifier = resolve_identifier(ctx.obj["config"], repo, pr_number, url)

    if reset:
        async def _reset():
            async with loader_session(ctx.obj) as loader:
                await loader.reset_chat(identifier, filename)

        run(_reset())
        scope = filename or "every file"
        console.print(f"[green]Discussion reset for {scope}.[/green]")
        return

    if not filename or not message:
        raise click.UsageError("Pass --file and a MESSAGE, or --reset.")

    async def _chat():
        async with loader_session(ctx.obj) as loader:
            abort = asyncio.Event()
            with abort_on_interrupt(abort):
                try:
                    await loader.chat(identifier, filename, message, print_token, _language(ctx, language), signal=abort)
                except AbortedError:
                    console.print(INTERRUPTED_MARKER, style="yellow", markup=False, highlight=False)
                    return
            console.print()

    run(_chat())


@click.command("summary")
@pr_options
@language_option
@click.pass_context
def summary_cmd(ctx, repo, pr_number, url, language: str | None):
    """Stream a summary of the whole pull request and store it."""
    identifier = resolve_identifier(ctx.obj["config"], repo, pr_number, url)

    async def _summarize():
        async with loader_session(ctx.obj) as loader:
            abort = asyncio.Event()
            with abort_on_interrupt(abort):
                try:
                    await loader.summarize(identifier, _language(ctx, language), print_token, signal=abort)
                except AbortedError:
                    console.print("\n[yellow]Summary cancelled; nothing was stored.[/yellow]")
                    return
            console.print()

    run(_summarize())
