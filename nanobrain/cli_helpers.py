#!/usr/bin/env python3
"""
nanobrain CLI Helpers

Shared formatting utilities for consistent CLI output across all commands.
Provides colored status messages, score coloring, logging setup and
progress spinners.
"""

import logging
from contextlib import contextmanager

from rich.console import Console
from rich.logging import RichHandler

# Single shared Console instance for the entire CLI
console = Console()


def print_success(message: str) -> None:
    """Print a success message with green checkmark."""
    console.print(f"[green]\u2713[/green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message with yellow triangle."""
    console.print(f"[yellow]\u26a0[/yellow]  {message}")


def print_error(message: str, fix_hint: str = "") -> None:
    """Print an error message with red X and optional fix hint."""
    console.print(f"[red]\u2717[/red] {message}")
    if fix_hint:
        console.print(f"  [white]Hint: {fix_hint}[/white]")


@contextmanager
def spinner(message: str):
    """
    Context manager for showing a Rich spinner during long operations.

    Usage:
        with spinner("Compacting memory"):
            do_slow_work()
    """
    with console.status(f"[bold cyan]{message}...", spinner="dots"):
        yield


def format_score(score: float) -> str:
    """
    Return a Rich-markup colored credit score.

    Green at or above the promotion threshold, red below the prune
    threshold, yellow in between.
    """
    if score > 0.7:
        color = "green"
    elif score < 0.2:
        color = "red"
    else:
        color = "yellow"
    return f"[{color}]{score:.3f}[/{color}]"


def configure_logging(verbose: bool = False) -> None:
    """Route nanobrain's stdlib loggers through Rich."""
    level = logging.DEBUG if verbose else logging.WARNING
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    root = logging.getLogger("nanobrain")
    root.handlers[:] = [handler]
    root.setLevel(level)
