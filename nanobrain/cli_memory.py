"""CLI commands for memory management.

Kept apart from cli.py to keep the main CLI module manageable.
Groups:
    memory_group  -- status, top, search, show, store-entity, store-episode,
                     outcome, decay, compact, prune, render, events, log
"""

import sys
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional, Tuple

import click
from rich.table import Table

from nanobrain.cli_helpers import (
    console,
    format_score,
    print_error,
    print_success,
    print_warning,
    spinner,
)
from nanobrain.errors import NanobrainError
from nanobrain.memory.schemas import MemoryType, OutcomeSignal


@contextmanager
def _open_memory(ctx: click.Context) -> Iterator["MemoryContext"]:  # noqa: F821
    """Open the configured memory directory; report nanobrain errors and exit 1."""
    from nanobrain.memory.context import open_memory

    memory = None
    try:
        memory = open_memory((ctx.obj or {}).get("memory_dir"))
        yield memory
    except NanobrainError as e:
        print_error(str(e))
        sys.exit(1)
    finally:
        if memory is not None:
            memory.close()


def _read_content(content: Optional[str]) -> str:
    if content is not None:
        return content
    if not sys.stdin.isatty():
        return sys.stdin.read()
    raise click.UsageError("Provide --content or pipe the memory body on stdin")


# =========================================================================
# Memory commands
# =========================================================================


@click.group("memory")
def memory_group():
    """Memory store and credit ledger management.

    Store and search memories, feed outcome signals back into credit
    scores, and run the consolidate/promote/prune lifecycle.
    """
    pass


@memory_group.command("status")
@click.pass_context
def memory_status(ctx: click.Context):
    """Show overall memory statistics."""
    with _open_memory(ctx) as memory:
        stats = memory.tracker.get_stats()
        entities = len(memory.store.list(MemoryType.ENTITY))
        episodes = len(memory.store.list(MemoryType.EPISODE))

    table = Table(title="nanobrain Memory Status")
    table.add_column("Item", style="bold")
    table.add_column("Count", justify="right")

    table.add_row("entities", str(entities))
    table.add_row("episodes", str(episodes))
    for table_name in ("credit_records", "credit_events", "turn_records",
                       "lifecycle_log", "contradictions"):
        table.add_row(table_name, str(stats.get(table_name, 0)))
    table.add_row("pending_turns", str(stats.get("pending_turns", 0)))

    console.print(table)
    console.print()

    avg = stats.get("average_score")
    console.print(f"  Memory dir: {memory.memory_dir}")
    console.print(f"  Average score: {avg:.3f}" if avg is not None else "  Average score: -")
    last_decay = stats.get("last_decay")
    console.print(f"  Last decay: {last_decay or '[white]never[/white]'}")


@memory_group.command("top")
@click.option("--limit", default=20, type=int, help="Number of records to show")
@click.pass_context
def memory_top(ctx: click.Context, limit: int):
    """Show the highest-credit memories."""
    with _open_memory(ctx) as memory:
        records = memory.tracker.get_top_scored(limit)

    if not records:
        console.print("[white]No credit records yet.[/white]")
        return

    table = Table(title="Top Scored Memories")
    table.add_column("Memory", style="bold")
    table.add_column("Score", justify="right")
    table.add_column("Accesses", justify="right")
    for r in records:
        table.add_row(r.id, format_score(r.score), str(r.access_count))
    console.print(table)


@memory_group.command("search")
@click.argument("query")
@click.option("--limit", default=5, type=int, help="Maximum results (1-20)")
@click.option("--type", "memory_type", default=None,
              type=click.Choice([t.value for t in MemoryType]), help="Restrict to a memory type")
@click.option("--session", "session_id", default=None,
              help="Record the results as a pending turn for this session")
@click.pass_context
def memory_search(ctx: click.Context, query: str, limit: int,
                  memory_type: Optional[str], session_id: Optional[str]):
    """Credit-weighted search."""
    with _open_memory(ctx) as memory:
        if session_id:
            results = memory.ranker.search_and_record(session_id, query, limit, memory_type)
        else:
            results = memory.ranker.credit_weighted_search(query, limit, memory_type)

    if not results:
        console.print(f"[white]No memories match {query!r}.[/white]")
        return

    table = Table(title=f"Results for {query!r}")
    table.add_column("Memory", style="bold")
    table.add_column("Relevance", justify="right")
    table.add_column("Credit", justify="right")
    table.add_column("Combined", justify="right")
    for r in results:
        table.add_row(
            r.id,
            f"{r.relevance_score:.1f}",
            format_score(r.credit_score),
            f"{r.combined_score:.3f}",
        )
    console.print(table)


@memory_group.command("show")
@click.argument("memory_id")
@click.pass_context
def memory_show(ctx: click.Context, memory_id: str):
    """Show a memory and its credit score."""
    with _open_memory(ctx) as memory:
        entry = memory.store.retrieve(memory_id)
        score = memory.tracker.get_score(memory_id)

    console.print(f"[bold]{entry.id}[/bold]  ({entry.type.value}, {entry.category})")
    console.print(f"  Score: {format_score(score)}")
    console.print(f"  Tags: {', '.join(entry.tags) or '-'}")
    if entry.pinned:
        console.print("  [cyan]pinned[/cyan]")
    console.print()
    click.echo(entry.content)


@memory_group.command("store-entity")
@click.argument("category")
@click.argument("name")
@click.option("--content", default=None, help="Memory body (default: read stdin)")
@click.option("--tag", "tags", multiple=True, help="Tag (repeatable)")
@click.option("--pinned", is_flag=True, help="Protect from archival")
@click.pass_context
def memory_store_entity(ctx: click.Context, category: str, name: str,
                        content: Optional[str], tags: Tuple[str, ...], pinned: bool):
    """Create a long-lived entity memory."""
    body = _read_content(content)
    with _open_memory(ctx) as memory:
        stored = memory.store.store_entity(category, name, body, tags, pinned)
        memory.tracker.ensure_record(stored.id)
    print_success(f"Stored {stored.id} at {stored.path}")


@memory_group.command("store-episode")
@click.argument("slug")
@click.option("--content", default=None, help="Memory body (default: read stdin)")
@click.option("--tag", "tags", multiple=True, help="Tag (repeatable)")
@click.option("--pinned", is_flag=True, help="Protect from archival")
@click.option("--date", "as_of", default=None, type=click.DateTime(),
              help="When the episode happened (default: now, UTC)")
@click.pass_context
def memory_store_episode(ctx: click.Context, slug: str, content: Optional[str],
                         tags: Tuple[str, ...], pinned: bool, as_of: Optional[datetime]):
    """Create an episodic memory."""
    body = _read_content(content)
    with _open_memory(ctx) as memory:
        stored = memory.store.store_episode(slug, body, tags, pinned, as_of=as_of)
        memory.tracker.ensure_record(stored.id)
    print_success(f"Stored {stored.id} at {stored.path}")


@memory_group.command("outcome")
@click.argument("session_id")
@click.argument("signal", type=click.Choice([s.value for s in OutcomeSignal]))
@click.pass_context
def memory_outcome(ctx: click.Context, session_id: str, signal: str):
    """Attribute an outcome signal to a session's latest retrieval."""
    with _open_memory(ctx) as memory:
        credited = memory.tracker.apply_outcome(session_id, signal)

    if credited:
        print_success(f"Applied {signal} to {credited} memory(ies)")
    else:
        print_warning(f"No pending retrieval for session {session_id}; nothing changed")


@memory_group.command("decay")
@click.argument("days", type=float)
@click.pass_context
def memory_decay(ctx: click.Context, days: float):
    """Decay all credit scores by DAYS of elapsed time."""
    with _open_memory(ctx) as memory:
        count = memory.tracker.apply_decay(days)
    console.print(f"[bold]Decay applied:[/bold] {count} record(s) updated")


@memory_group.command("compact")
@click.pass_context
def memory_compact(ctx: click.Context):
    """Run consolidate, promote and prune."""
    with _open_memory(ctx) as memory:
        with spinner("Compacting memory"):
            report = memory.lifecycle.compact()

    console.print(
        f"[bold]Compaction:[/bold] {report.consolidated} consolidated, "
        f"{report.promoted} promoted, {report.pruned} pruned"
    )
    for line in report.details:
        console.print(f"  {line}")


@memory_group.command("prune")
@click.option("--threshold", default=None, type=float, help="Score threshold (default from config)")
@click.pass_context
def memory_prune(ctx: click.Context, threshold: Optional[float]):
    """Archive low-credit memories."""
    with _open_memory(ctx) as memory:
        report = memory.lifecycle.prune(threshold)

    console.print(f"[bold]Pruned:[/bold] {report.pruned}")
    for line in report.details:
        console.print(f"  {line}")


@memory_group.command("render")
@click.option("--max-tokens", default=None, type=int, help="Token budget (default from config)")
@click.pass_context
def memory_render(ctx: click.Context, max_tokens: Optional[int]):
    """Write the budgeted MEMORY.md summary."""
    with _open_memory(ctx) as memory:
        path = memory.generate_summary(max_tokens)
    print_success(f"Wrote {path}")


@memory_group.command("events")
@click.option("--memory-id", default=None, help="Only events for this memory")
@click.option("--limit", default=50, type=int, help="Number of entries to show")
@click.pass_context
def memory_events(ctx: click.Context, memory_id: Optional[str], limit: int):
    """Show credit events (score changes from outcomes)."""
    with _open_memory(ctx) as memory:
        events = memory.tracker.get_events(memory_id=memory_id, limit=limit)

    if not events:
        console.print("[white]No credit events.[/white]")
        return

    table = Table(title=f"Credit Events (last {limit})")
    table.add_column("Timestamp", max_width=19)
    table.add_column("Memory", style="bold")
    table.add_column("Signal")
    table.add_column("Reward", justify="right")
    table.add_column("Old", justify="right")
    table.add_column("New", justify="right")
    table.add_column("Session", max_width=20)

    for e in events:
        table.add_row(
            e.created_at[:19],
            e.memory_id,
            e.event_type,
            f"{e.reward:+.2f}",
            f"{e.old_score:.3f}",
            format_score(e.new_score),
            (e.session_id or "")[:20],
        )
    console.print(table)


@memory_group.command("log")
@click.option("--action", default=None,
              type=click.Choice(["decay", "promote", "consolidate", "prune"]),
              help="Only this lifecycle action")
@click.option("--limit", default=50, type=int, help="Number of entries to show")
@click.pass_context
def memory_log(ctx: click.Context, action: Optional[str], limit: int):
    """Show the lifecycle log."""
    with _open_memory(ctx) as memory:
        entries = memory.ledger.get_lifecycle_log(action=action, limit=limit)

    if not entries:
        console.print("[white]No lifecycle entries.[/white]")
        return

    table = Table(title=f"Lifecycle Log (last {limit})")
    table.add_column("Timestamp", max_width=19)
    table.add_column("Action", style="bold")
    table.add_column("Targets", max_width=50)
    table.add_column("Details", max_width=50)
    for e in entries:
        targets = ", ".join(e.target_ids)
        table.add_row(e.created_at[:19], e.action, targets[:50], (e.details or "")[:50])
    console.print(table)
