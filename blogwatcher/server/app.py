"""blogwatcher - MCP server

This module builds the FastMCP server exposing the scan tools, with
multi-transport support (STDIO, SSE, and Streamable HTTP).
"""

import logging
import os
from typing import Optional

from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings

from blogwatcher.config import ServerConfig, get_config
from blogwatcher.logging_config import setup_logging
from blogwatcher.storage.database import close_database
from blogwatcher.tools.scan_tools import scan_tools


def create_mcp_server(config: Optional[ServerConfig] = None) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        config: Optional server configuration

    Returns:
        Configured FastMCP server instance
    """
    if config is None:
        config = get_config()

    logger = setup_logging(config)
    logger.info(f"Server config: {config.name} at log level {config.log_level}")

    # Configure DNS rebinding protection (disabled by default for development)
    dns_protection = os.getenv("MCP_DNS_REBINDING_PROTECTION", "false").lower() == "true"
    allowed_hosts_env = os.getenv("MCP_ALLOWED_HOSTS", "")
    allowed_hosts = [h.strip() for h in allowed_hosts_env.split(",") if h.strip()]

    logger.info(f"DNS rebinding protection: {'enabled' if dns_protection else 'disabled'}")

    mcp_server = FastMCP(
        config.name or "blogwatcher",
        transport_security=TransportSecuritySettings(
            enable_dns_rebinding_protection=dns_protection,
            allowed_hosts=allowed_hosts
        )
    )

    register_tools(mcp_server)

    logger.info("Server initialization complete")
    return mcp_server


def register_tools(mcp_server: FastMCP) -> None:
    """Register all MCP tools with the server."""
    logger = logging.getLogger("blogwatcher")

    for tool_func in scan_tools:
        mcp_server.tool(name=tool_func.__name__)(tool_func)
        logger.info(f"Registered scan tool: {tool_func.__name__}")


async def run_server(
    server: FastMCP,
    transport: str = "stdio",
    host: str = "127.0.0.1",
    port: int = 3001,
) -> None:
    """Run the server on the given transport until it stops."""
    logger = logging.getLogger("blogwatcher")

    try:
        if transport == "stdio":
            logger.info("Starting server with STDIO transport")
            await server.run_stdio_async()
        elif transport == "sse":
            logger.info(f"Starting server with SSE transport on {host}:{port}")
            server.settings.host = host
            server.settings.port = port
            await server.run_sse_async()
        elif transport == "streamable-http":
            logger.info(f"Starting server with Streamable HTTP transport on {host}:{port}")
            server.settings.host = host
            server.settings.port = port
            server.settings.streamable_http_path = "/mcp"
            await server.run_streamable_http_async()
        else:
            raise ValueError(f"Unknown transport: {transport}")
    finally:
        await close_database()
