"""
Pylon MCP server entry point.

Serves the Pylon tools over stdio. Logs go to stderr because stdout
carries the MCP protocol stream.
"""

import asyncio
import sys

from loguru import logger

from pylon_mcp.pylon.client import close_pylon_client
from pylon_mcp.settings import global_settings
from pylon_mcp.tools.server import mcp


def setup_logging(debug: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if debug else "INFO")


async def main() -> None:
    """Run the stdio server until the client disconnects."""
    setup_logging(global_settings.debug)

    if not global_settings.pylon_api_token:
        logger.warning("PYLON_API_TOKEN is not set; tool calls will fail until it is")

    logger.info("Pylon MCP Server running on stdio")
    try:
        await mcp.run_async(transport="stdio")
    finally:
        # Stops the cache sweep thread and closes the HTTP client
        await close_pylon_client()
        logger.info("Pylon MCP Server stopped")


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")


if __name__ == "__main__":
    run()
