"""Book Instance MCP Server - FastMCP Implementation

Exposes the book instance lifecycle over MCP. Clients connect via stdio.

Features exposed:
- Resources: instance listings, instance details, copies held by a reader
- Tools: status changes, provisioning, detail edits, deletion
"""

import logging
import signal
import sys
from typing import Any

from fastmcp import FastMCP

from book_instance_mcp.config import get_config
from book_instance_mcp.database.session import get_db_manager
from book_instance_mcp.lifecycle.services import set_dispatcher
from book_instance_mcp.observability import initialize_observability
from book_instance_mcp.resources import all_resources
from book_instance_mcp.tools import all_tools

# Initialize logging - stderr for logs, stdout for MCP protocol
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)

logger = logging.getLogger(__name__)

# Load configuration
config = get_config()

initialize_observability()

# Create the FastMCP server instance
mcp = FastMCP(
    name=config.server_name,
    version=config.server_version,
    instructions=(
        "Book Instance MCP Server - tracks the physical copies of the library's books. "
        "Each copy is Available (A), Loaned (L), Reserved (R) or in Maintenance (M). "
        "Use resources to browse copies and see what a reader holds, and tools "
        "(staff roles only) to change a copy's status, add, edit or remove copies."
    ),
)

# Register all resources with the MCP server
for resource in all_resources:
    uri = resource.get("uri_template", resource.get("uri"))
    if not uri:
        logger.error("Resource missing URI: %s", resource)
        continue

    logger.debug("Registering resource: %s with URI: %s", resource["name"], uri)
    try:
        mcp.resource(
            uri,
            name=resource["name"],
            description=resource["description"],
            mime_type=resource["mime_type"],
        )(resource["handler"])
    except Exception:
        logger.exception("Failed to register resource %s", resource["name"])
        raise

logger.info("Registered %d resources", len(all_resources))

# Register all tools with the MCP server
for tool in all_tools:
    logger.debug("Registering tool: %s", tool["name"])
    try:
        mcp.tool(
            name=tool["name"],
            description=tool["description"],
        )(tool["handler"])
    except Exception:
        logger.exception("Failed to register tool %s", tool["name"])
        raise

logger.info("Registered %d tools", len(all_tools))


def handle_shutdown() -> None:
    """Drain pending notifications and close database connections."""
    logger.info("MCP Server shutting down gracefully...")
    set_dispatcher(None)
    get_db_manager().close()
    logger.info("Shutdown complete")


def prepare_database() -> None:
    """Make sure the schema exists before the first request."""
    db_manager = get_db_manager()
    if not db_manager.verify_connection():
        raise RuntimeError(f"Cannot connect to database at {config.database_path}")
    db_manager.init_database()


def run_stdio_server() -> None:
    """Run the MCP server using stdio transport.

    Stdin receives JSON-RPC requests, stdout sends responses.
    """
    logger.info("Starting %s v%s on stdio transport", config.server_name, config.server_version)

    if config.debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug mode enabled - verbose protocol logging active")
    else:
        logging.getLogger().setLevel(config.log_level)
        logging.getLogger("fastmcp").setLevel(logging.WARNING)

    def signal_handler(signum: int, _frame: Any) -> None:
        logger.info("Received signal %s, initiating shutdown...", signum)
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        prepare_database()
        logger.info("MCP Server ready and waiting for connections...")
        mcp.run(transport="stdio")
    except Exception:
        logger.exception("Fatal error in MCP server")
        sys.exit(1)
    finally:
        handle_shutdown()


def main() -> None:
    """Main entry point for the MCP server."""
    try:
        logger.info("=" * 60)
        logger.info("Book Instance MCP Server")
        logger.info("Version: %s", config.server_version)
        logger.info("Transport: %s", config.transport)
        logger.info("Debug Mode: %s", config.debug)
        logger.info("=" * 60)

        if config.transport == "stdio":
            run_stdio_server()
        else:
            logger.error("Unsupported transport: %s", config.transport)
            sys.exit(1)

    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception:
        logger.exception("Failed to start MCP server")
        sys.exit(1)


if __name__ == "__main__":
    main()
