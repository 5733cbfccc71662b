#!/usr/bin/env python3
"""
nanobrain CLI - Long-lived memory for autonomous agents.

Usage:
    nanobrain [--memory-dir DIR] memory status
    nanobrain memory search QUERY [--limit N] [--session ID]
    nanobrain memory store-entity CATEGORY NAME --content TEXT
    nanobrain memory store-episode SLUG --content TEXT
    nanobrain memory outcome SESSION SIGNAL
    nanobrain memory decay DAYS
    nanobrain memory compact
    nanobrain memory render [--max-tokens N]
    nanobrain mcp serve
"""

import sys
from typing import Optional

import click

from nanobrain import __version__
from nanobrain.cli_helpers import configure_logging
from nanobrain.cli_memory import memory_group


@click.group()
@click.version_option(version=__version__, prog_name="nanobrain")
@click.option("--memory-dir", type=click.Path(file_okay=False), default=None,
              help="Memory directory (default: $NANOBRAIN_MEMORY_DIR or ~/.nanobrain/memory)")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def main(ctx: click.Context, memory_dir: Optional[str], verbose: bool):
    """nanobrain - Memory that learns what is worth remembering."""
    ctx.ensure_object(dict)
    ctx.obj["memory_dir"] = memory_dir
    configure_logging(verbose)


@main.group("mcp")
def mcp_group():
    """Model Context Protocol tool server."""
    pass


@mcp_group.command("serve")
@click.option("--session-id", default=None, help="Session id for retrieval attribution")
@click.pass_context
def mcp_serve(ctx: click.Context, session_id: Optional[str]):
    """Serve memory tools over stdio."""
    import asyncio

    from nanobrain.cli_helpers import print_error
    from nanobrain.errors import NanobrainError
    from nanobrain.mcp.server import NanobrainMCPServer
    from nanobrain.memory.context import open_memory

    try:
        memory = open_memory(ctx.obj.get("memory_dir"))
    except NanobrainError as e:
        print_error(str(e))
        sys.exit(1)

    try:
        server = NanobrainMCPServer(memory, session_id=session_id)
        asyncio.run(server.run_stdio())
    except RuntimeError as e:
        print_error(str(e), fix_hint="pip install 'nanobrain[mcp]'")
        sys.exit(1)
    except KeyboardInterrupt:
        pass
    finally:
        memory.close()


main.add_command(memory_group)


if __name__ == "__main__":
    main()
