"""Command line interface for blogwatcher."""

import asyncio
import sys
from typing import List

import click

from blogwatcher.config import get_config
from blogwatcher.errors import StorageError
from blogwatcher.logging_config import setup_logging
from blogwatcher.models.schemas import ScanResult
from blogwatcher.services.scanner import scan_all_blogs, scan_blog_by_name
from blogwatcher.storage.database import close_database, get_database


@click.group()
def cli() -> None:
    """Track blogs and collect their new articles."""


@cli.command()
@click.option("--blog", "blog_name", default="", help="Scan only the blog with this name")
@click.option(
    "--workers",
    type=click.IntRange(min=0),
    default=0,
    help="Parallel workers for a full scan (0 uses BLOGWATCHER_SCAN_WORKERS)",
)
def scan(blog_name: str, workers: int) -> None:
    """Scan blogs for new articles."""
    config = get_config()
    setup_logging(config)

    async def run_scan() -> List[ScanResult]:
        db = await get_database()
        try:
            if blog_name:
                result = await scan_blog_by_name(db, blog_name, config)
                return [result] if result else []
            return await scan_all_blogs(
                db, workers=workers if workers > 0 else None, config=config
            )
        finally:
            await close_database()

    try:
        results = asyncio.run(run_scan())
    except StorageError as e:
        raise click.ClickException(str(e))

    if blog_name and not results:
        raise click.ClickException(f"Blog '{blog_name}' not found")

    for result in results:
        line = (
            f"{result.blog_name}: {result.new_articles} new / "
            f"{result.total_found} found ({result.source})"
        )
        if result.error:
            line += f" - error: {result.error}"
        click.echo(line)

    total = sum(r.new_articles for r in results)
    click.echo(f"Scanned {len(results)} blogs, {total} new articles")


@cli.command()
@click.option(
    "--port",
    default=3001,
    help="Port to listen on for SSE or Streamable HTTP transport"
)
@click.option(
    "--host",
    default="127.0.0.1",
    help="Host to bind to (use 0.0.0.0 for Docker)"
)
@click.option(
    "--transport",
    type=click.Choice(["stdio", "sse", "streamable-http"]),
    default="stdio",
    help="Transport type (stdio, sse, or streamable-http)"
)
def serve(port: int, host: str, transport: str) -> None:
    """Run the blogwatcher MCP server with the specified transport."""
    from blogwatcher.server.app import create_mcp_server, run_server

    config = get_config()
    logger = setup_logging(config)
    server = create_mcp_server(config)

    try:
        asyncio.run(run_server(server, transport=transport, host=host, port=port))
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error(f"Failed to start server: {e}", exc_info=True)
        sys.exit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
