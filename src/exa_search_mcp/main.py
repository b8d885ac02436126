import asyncio
import tempfile
from pathlib import Path
from typing import Literal

import asyncclick as click
from fastmcp.server.middleware.logging import LoggingMiddleware
from fastmcp.utilities.logging import configure_logging, get_logger

from exa_search_mcp.cache.results import (
    DEFAULT_EVICTION_INTERVAL_SECONDS,
    DEFAULT_MAX_ENTRIES,
    DEFAULT_TTL_MS,
    ResultCache,
)
from exa_search_mcp.cache.stores import BaseKVStore, FileKVStore, MemoryKVStore
from exa_search_mcp.clients.search.exa import ExaClient
from exa_search_mcp.formatting.formatter import DEFAULT_TOKEN_BUDGET, ResponseFormatter
from exa_search_mcp.models.errors import ConfigurationError
from exa_search_mcp.servers.profiles import DEFAULT_PROFILES, DomainProfile
from exa_search_mcp.servers.search import URL_CONTENT_TOOL, SearchServer

logger = get_logger(__name__)

DEFAULT_CACHE_DIR = Path(tempfile.gettempdir()) / "exa-mcp-cache"


def select_profiles(enabled_tools: tuple[str, ...]) -> tuple[DomainProfile, ...]:
    """Pick the search profiles to expose. No names means every profile."""

    if not enabled_tools:
        return DEFAULT_PROFILES

    profiles_by_name = {profile.name: profile for profile in DEFAULT_PROFILES}
    available = [*profiles_by_name, URL_CONTENT_TOOL]

    if unknown := [name for name in enabled_tools if name not in available]:
        msg = f"Unknown tools: {', '.join(unknown)}. Available tools: {', '.join(available)}"
        raise ConfigurationError(msg)

    return tuple(profiles_by_name[name] for name in dict.fromkeys(enabled_tools) if name in profiles_by_name)


def build_kv_store(cache_dir: Path, memory_cache: bool) -> BaseKVStore:
    if memory_cache:
        return MemoryKVStore()

    return FileKVStore(directory=cache_dir)


@click.command()
@click.option("--api-key", type=str, envvar="EXA_API_KEY", required=True, help="The Exa API key")
@click.option("--enabled-tools", type=str, multiple=True, help="A search tool to expose, can be repeated. Defaults to every tool.")
@click.option("--cache-dir", type=click.Path(path_type=Path), envvar="EXA_CACHE_DIR", default=DEFAULT_CACHE_DIR, help="Where to keep cached results")
@click.option("--memory-cache", is_flag=True, default=False, help="Keep cached results in memory instead of on disk")
@click.option("--cache-ttl", type=int, default=DEFAULT_TTL_MS // 1000, help="How long cached results live, in seconds")
@click.option("--cache-max-entries", type=int, default=DEFAULT_MAX_ENTRIES, help="The most result sets to keep cached")
@click.option(
    "--eviction-interval", type=float, default=DEFAULT_EVICTION_INTERVAL_SECONDS, help="Seconds between sweeps of the result cache"
)
@click.option("--token-budget", type=int, default=DEFAULT_TOKEN_BUDGET, help="The token budget for a single search response")
@click.option(
    "--mcp-transport",
    type=click.Choice(["stdio", "sse", "streamable-http"]),
    default="stdio",
    help="The transport to run the MCP server on",
)
@click.option("--debug", is_flag=True, default=False, help="Enable debug logging")
async def cli(
    api_key: str,
    enabled_tools: tuple[str, ...],
    cache_dir: Path,
    memory_cache: bool,
    cache_ttl: int,
    cache_max_entries: int,
    eviction_interval: float,
    token_budget: int,
    mcp_transport: Literal["stdio", "sse", "streamable-http"],
    debug: bool,
):
    configure_logging(level="DEBUG" if debug else "INFO")

    profiles = select_profiles(enabled_tools)

    result_cache = ResultCache(
        kv_store=build_kv_store(cache_dir, memory_cache),
        default_ttl=cache_ttl * 1000,
        max_entries=cache_max_entries,
        eviction_interval=eviction_interval,
    )

    exa_client = ExaClient(api_key=api_key)

    search_server = SearchServer(
        search_client=exa_client,
        formatter=ResponseFormatter(result_cache=result_cache),
        profiles=profiles,
        token_budget=token_budget,
        include_url_content=not enabled_tools or URL_CONTENT_TOOL in enabled_tools,
    )

    mcp = search_server.as_fastmcp()
    mcp.add_middleware(middleware=LoggingMiddleware())

    logger.info(f"Serving {', '.join(tool.name for tool in search_server.get_tools())} over {mcp_transport}")

    try:
        async with result_cache:
            await mcp.run_async(transport=mcp_transport)
    finally:
        await exa_client.close()


def run_mcp():
    asyncio.run(cli())


if __name__ == "__main__":
    run_mcp()
