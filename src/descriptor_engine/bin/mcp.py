"""bin/mcp — MCP server entry point.

  descriptor-mcp                   → stdio
  descriptor-mcp --log-level DEBUG
"""

from __future__ import annotations

import asyncio

import click


@click.command()
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR (logs go to stderr)")
def main(log_level: str | None) -> None:
    """Start the descriptor engine MCP server over stdio."""
    from descriptor_engine.lib.logging_setup import configure_logging
    from descriptor_engine.lib.mcp_server import run_server

    configure_logging(log_level)
    asyncio.run(run_server())


if __name__ == "__main__":
    main()
