"""Session commands: load, inspect and evict cached review sessions."""

from __future__ import annotations

from datetime import datetime

import click
from rich.markdown import Markdown
from rich.rule import Rule
from rich.table import Table

from prscribe_core.errors import NotFoundError
from prscribe_store.models import ChatTurn, SessionRecord

from prscribe_cli.context import console, loader_session, pr_options, resolve_identifier, run


def _fmt_time(epoch: float) -> str:
    return datetime.fromtimestamp(epoch).strftime("%Y-%m-%d %H:%M")


def _print_session(record: SessionRecord) -> None:
    snap = record.snapshot
    status_style = {"open": "green", "merged": "magenta", "closed": "red"}.get(snap.merge_status, "white")
    console.print(f"[bold]#{snap.number}[/bold] {snap.title}  [{status_style}]{snap.merge_status}[/{status_style}]")
    console.print(f"[dim]{record.key} · by {snap.author or 'unknown'} · {len(snap.review_comments)} comments[/dim]")

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("File", max_width=60)
    table.add_column("Status", width=10)
    table.add_column("+/-", justify="right", width=10)
    table.add_column("Checklist", justify="right", width=10)

    for f in snap.files:
        checklist = record.analysis.checklist_for(f.filename) if record.analysis else None
        if checklist is None:
            progress = "[dim]-[/dim]"
        else:
            done = sum(1 for i in checklist.items if i.is_checked)
            progress = f"{done}/{len(checklist.items)}"
        table.add_row(f.filename, f.status, f"+{f.additions} -{f.deletions}", progress)

    console.print(table)


def _print_summary(record: SessionRecord) -> None:
    if record.analysis and record.analysis.summary:
        console.print(Rule("Summary"))
        console.print(Markdown(record.analysis.summary))


def _print_file(record: SessionRecord, filename: str, turns: list[ChatTurn]) -> None:
    if record.snapshot.find_file(filename) is None:
        raise click.UsageError(f"{filename} is not part of {record.key}.")

    console.print(Rule(filename))
    checklist = record.analysis.checklist_for(filename) if record.analysis else None
    if checklist is None:
        console.print("[dim]No checklist yet. Run `prscribe checklist --file ...`.[/dim]")
    else:
        console.print(checklist.explanation, markup=False)
        for item in checklist.items:
            mark = "[green]✔[/green]" if item.is_checked else "[yellow]○[/yellow]"
            console.print(f"  {mark} [dim]{item.id}[/dim] {item.description}", highlight=False)

    if not turns:
        console.print("[dim]No discussion yet.[/dim]")
        return
    console.print()
    for turn in turns:
        style = "bold cyan" if turn.sender == "user" else "bold green"
        console.print(f"{turn.sender}:", style=style)
        console.print(turn.text, markup=False, highlight=False)


@click.command("load")
@pr_options
@click.option("--refresh", is_flag=True, help="Re-fetch from GitHub even if the session is cached.")
@click.pass_context
def load_cmd(ctx, repo: str | None, pr_number: int | None, url: str | None, refresh: bool):
    """Fetch a pull request into the cache (or show the cached copy)."""
    identifier = resolve_identifier(ctx.obj["config"], repo, pr_number, url)

    async def _load():
        async with loader_session(ctx.obj) as loader:
            return await loader.load(identifier, refresh=refresh)

    _print_session(run(_load()))


@click.command("show")
@click.argument("key")
@click.option("--file", "filename", default=None, help="Also print this file's checklist and discussion.")
@click.pass_context
def show_cmd(ctx, key: str, filename: str | None):
    """Show a cached session by KEY without contacting GitHub.

    Prints the stored summary when there is one. With --file, also prints
    that file's checklist items and chat transcript.
    """
    cache = ctx.obj["cache"]

    async def _get():
        record = await cache.get(key)
        if record is None:
            raise NotFoundError(f"No cached session {key}. Run `prscribe sessions` to list them.")
        turns = await cache.get_transcript(key, filename) if filename else []
        return record, turns

    record, turns = run(_get())
    _print_session(record)
    _print_summary(record)
    if filename:
        _print_file(record, filename, turns)


@click.command("sessions")
@click.pass_context
def sessions_cmd(ctx):
    """List cached sessions, most recently saved first."""
    cache = ctx.obj["cache"]

    async def _list():
        return await cache.get_all(), await cache.transcript_stats()

    records, stats = run(_list())
    if not records:
        console.print("[yellow]No cached sessions.[/yellow]")
        return

    table = Table(title="Cached Sessions", show_header=True, header_style="bold cyan")
    table.add_column("Key", style="bold")
    table.add_column("Title", max_width=40)
    table.add_column("Files", justify="right", width=6)
    table.add_column("Checklists", justify="right", width=10)
    table.add_column("Summary", width=8)
    table.add_column("Saved At", width=17)

    for r in sorted(records, key=lambda r: r.saved_at, reverse=True):
        checklists = len(r.analysis.checklists) if r.analysis else 0
        has_summary = bool(r.analysis and r.analysis.summary)
        table.add_row(
            r.key,
            r.snapshot.title[:40],
            str(len(r.snapshot.files)),
            str(checklists),
            "[green]yes[/green]" if has_summary else "[dim]no[/dim]",
            _fmt_time(r.saved_at),
        )

    console.print(table)
    console.print(
        f"[dim]{len(records)}/{cache.cache_cap} slots used · "
        f"{stats.total_entries} chat transcript(s), {stats.total_size / 1024:.1f} KB[/dim]"
    )


@click.command("recent")
@click.pass_context
def recent_cmd(ctx):
    """Show recently viewed sessions, most recent first."""
    entries = run(ctx.obj["cache"].recent())
    if not entries:
        console.print("[yellow]No recent sessions.[/yellow]")
        return

    table = Table(title="Recently Viewed", show_header=True, header_style="bold cyan")
    table.add_column("Key", style="bold")
    table.add_column("Title", max_width=50)
    table.add_column("Viewed At", width=17)
    for e in entries:
        table.add_row(e.key, e.title[:50], _fmt_time(e.touched_at))
    console.print(table)


@click.command("remove")
@click.argument("keys", nargs=-1)
@click.option("--all", "remove_all", is_flag=True, help="Remove every cached session and transcript.")
@click.pass_context
def remove_cmd(ctx, keys: tuple[str, ...], remove_all: bool):
    """Remove cached sessions (with their transcripts) by KEY."""
    cache = ctx.obj["cache"]
    if remove_all:
        run(cache.clear())
        console.print("[green]Cache cleared.[/green]")
        return
    if not keys:
        raise click.UsageError("Pass one or more session keys, or --all.")

    run(cache.remove_batch(list(keys)))
    console.print(f"[green]Removed {len(keys)} session(s).[/green]")
