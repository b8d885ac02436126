import time
from typing import Any, ClassVar

from aiohttp import ClientError
from fastmcp import FastMCP
from fastmcp.exceptions import ResourceError
from fastmcp.tools import Tool
from fastmcp.utilities.logging import get_logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from exa_search_mcp.cache.results import ResultCache
from exa_search_mcp.clients.search.base import BaseSearchClient
from exa_search_mcp.formatting.formatter import DEFAULT_TOKEN_BUDGET, ResponseFormatter, render_error
from exa_search_mcp.models.errors import ExaAPIError, ResultCacheError, RetrieveToolError, UpstreamSearchToolError
from exa_search_mcp.models.search import ContentLevel, LiveCrawl, OutputFormat
from exa_search_mcp.servers.profiles import DEFAULT_PROFILES, DomainProfile
from exa_search_mcp.servers.shared.annotations import (
    CACHE_ID,
    CONTENT_LEVEL,
    END_INDEX,
    LIVE_CRAWL,
    MAX_CHARS_PER_RESULT,
    NUM_RESULTS,
    OUTPUT_FORMAT,
    QUERY,
    RESULT_INDEX,
    START_INDEX,
    URL,
    URL_MAX_CHARACTERS,
)

logger = get_logger(__name__)

# Cheap levels can afford more results for roughly the same response size
DEFAULT_NUM_RESULTS: dict[ContentLevel, int] = {
    ContentLevel.SUMMARY: 5,
    ContentLevel.STANDARD: 3,
    ContentLevel.FULL: 3,
}

SEARCH_RESOURCE_TEMPLATE = "exa://search/{cache_id}"
CACHE_STATS_RESOURCE = "exa://cache/stats"

URL_CONTENT_TOOL = "url_content"
URL_CONTENT_DESCRIPTION = (
    "Extracts full content from specific URLs. Returns: complete page text, metadata. Use when: have exact URL to analyze."
)
DEFAULT_URL_MAX_CHARACTERS = 3_000
NO_CONTENT_MESSAGE = "No content found for the provided URL."


class SearchServer(BaseModel):
    """Exposes Exa searches as MCP tools, one per domain profile, plus tools to page through cached results."""

    model_config: ClassVar[ConfigDict] = ConfigDict(arbitrary_types_allowed=True)

    search_client: BaseSearchClient
    formatter: ResponseFormatter
    profiles: tuple[DomainProfile, ...] = DEFAULT_PROFILES
    token_budget: int = Field(default=DEFAULT_TOKEN_BUDGET, description="The token budget for a single search response.")
    include_url_content: bool = Field(default=True, description="Whether to expose the URL content extraction tool.")

    @property
    def result_cache(self) -> ResultCache:
        return self.formatter.result_cache

    async def search(
        self,
        profile: DomainProfile,
        query: str,
        num_results: int | None = None,
        content_level: ContentLevel | None = None,
        output_format: OutputFormat = OutputFormat.MARKDOWN,
        live_crawl: LiveCrawl | None = None,
        max_chars_per_result: int | None = None,
    ) -> str:
        """Search Exa with a domain profile and render the results within the token budget."""

        content_level = content_level or profile.default_content_level
        num_results = num_results or DEFAULT_NUM_RESULTS[content_level]
        max_characters = max_chars_per_result or self.formatter.chars_per_result(num_results, self.token_budget)

        started = time.perf_counter()
        logger.info(f"[{profile.name}] Searching for {query!r}: {num_results} results at the {content_level} level")

        try:
            response = await self.search_client.search(
                profile.build_query(query),
                num_results,
                search_type=profile.search_type,
                include_domains=list(profile.include_domains) or None,
                max_characters=max_characters,
                live_crawl=live_crawl or profile.live_crawl,
            )
        except ExaAPIError as e:
            logger.warning(f"[{profile.name}] Exa API error for {query!r}: {e}")
            raise UpstreamSearchToolError(render_error(f"Search error ({e.status}): {e.message}", query)) from e
        except (ClientError, TimeoutError, ValidationError) as e:
            logger.warning(f"[{profile.name}] Search request for {query!r} failed: {e!r}")
            raise UpstreamSearchToolError(render_error(f"Search error: {str(e) or type(e).__name__}", query)) from e

        rendered = await self.formatter.render(
            response.results,
            query,
            content_level=content_level,
            max_total_tokens=self.token_budget,
            output_format=output_format,
            upstream=response.to_upstream_metadata(),
        )

        logger.info(
            f"[{profile.name}] Rendered {rendered.metadata.returned_results} results for {query!r} "
            f"(~{rendered.metadata.token_estimate.estimated_tokens} tokens, cache {rendered.cache_id}) "
            f"in {time.perf_counter() - started:.2f}s"
        )

        return rendered.text

    async def retrieve_result(self, cache_id: CACHE_ID, index: RESULT_INDEX) -> str:
        """Retrieve the full content of one result from a previous search, using the cache ID from that search's response."""

        try:
            entry = await self.result_cache.lookup(cache_id)
            result = entry.result_at(index)
        except ResultCacheError as e:
            logger.info(f"Could not retrieve result {index} from {cache_id!r}: {e}")
            raise RetrieveToolError(str(e)) from e

        return self.formatter.render_single(result, index, cache_id, entry.total_results)

    async def retrieve_range(
        self,
        cache_id: CACHE_ID,
        start_index: START_INDEX,
        end_index: END_INDEX,
        content_level: CONTENT_LEVEL = ContentLevel.STANDARD,
    ) -> str:
        """Retrieve a range of results from a previous search without searching again.

        Returns results `start_index` up to, but not including, `end_index`. Out of range bounds are clamped.
        """

        try:
            entry = await self.result_cache.lookup(cache_id)
        except ResultCacheError as e:
            raise RetrieveToolError(str(e)) from e

        return self.formatter.render_range(
            entry.result_range(start_index, end_index),
            max(0, start_index),
            cache_id,
            entry.total_results,
            content_level=content_level or ContentLevel.STANDARD,
            max_total_tokens=self.token_budget,
        )

    async def url_content(
        self,
        url: URL,
        max_characters: URL_MAX_CHARACTERS = None,
        live_crawl: LIVE_CRAWL = None,
    ) -> str:
        """Extract the content of a single page from its URL."""

        started = time.perf_counter()
        logger.info(f"[{URL_CONTENT_TOOL}] Extracting content from {url!r}")

        try:
            response = await self.search_client.contents(
                [url],
                max_characters=max_characters or DEFAULT_URL_MAX_CHARACTERS,
                live_crawl=live_crawl or LiveCrawl.AUTO,
            )
        except ExaAPIError as e:
            logger.warning(f"[{URL_CONTENT_TOOL}] Exa API error for {url!r}: {e}")
            raise UpstreamSearchToolError(render_error(f"Crawling error ({e.status}): {e.message}", url, subject="URL")) from e
        except (ClientError, TimeoutError, ValidationError) as e:
            logger.warning(f"[{URL_CONTENT_TOOL}] Contents request for {url!r} failed: {e!r}")
            raise UpstreamSearchToolError(render_error(f"Crawling error: {str(e) or type(e).__name__}", url, subject="URL")) from e

        if not response.results:
            return NO_CONTENT_MESSAGE

        logger.info(f"[{URL_CONTENT_TOOL}] Extracted {url!r} in {time.perf_counter() - started:.2f}s")

        return response.model_dump_json(by_alias=True, exclude_none=True, indent=2)

    async def read_cached_search(self, cache_id: str) -> str:
        """A cached search, with every result in full, as JSON."""

        try:
            entry = await self.result_cache.lookup(cache_id)
        except ResultCacheError as e:
            raise ResourceError(str(e)) from e

        return entry.model_dump_json(by_alias=True, exclude_none=True, indent=2)

    async def read_cache_stats(self) -> str:
        """The number of cached searches and the creation times of the oldest and newest."""

        stats = await self.result_cache.stats()
        return stats.model_dump_json(indent=2)

    def search_tool(self, profile: DomainProfile) -> Tool:
        """Build the search tool for a domain profile."""

        async def search_profile(
            query: QUERY,
            num_results: NUM_RESULTS = None,
            content_level: CONTENT_LEVEL = None,
            output_format: OUTPUT_FORMAT = OutputFormat.MARKDOWN,
            live_crawl: LIVE_CRAWL = None,
            max_chars_per_result: MAX_CHARS_PER_RESULT = None,
        ) -> str:
            return await self.search(
                profile,
                query=query,
                num_results=num_results,
                content_level=content_level,
                output_format=output_format,
                live_crawl=live_crawl,
                max_chars_per_result=max_chars_per_result,
            )

        return Tool.from_function(fn=search_profile, name=profile.name, description=profile.description)

    def get_tools(self) -> list[Tool]:
        tools = [self.search_tool(profile) for profile in self.profiles]

        if self.include_url_content:
            tools.append(Tool.from_function(fn=self.url_content, name=URL_CONTENT_TOOL, description=URL_CONTENT_DESCRIPTION))

        return [
            *tools,
            Tool.from_function(fn=self.retrieve_result, name="retrieve_result"),
            Tool.from_function(fn=self.retrieve_range, name="retrieve_range"),
        ]

    def as_fastmcp(self, name: str = "Exa Search MCP") -> FastMCP[Any]:
        """Convert the server to a FastMCP server."""

        mcp: FastMCP[Any] = FastMCP[Any](name=name)

        [mcp.add_tool(tool=tool) for tool in self.get_tools()]

        _ = mcp.resource(SEARCH_RESOURCE_TEMPLATE, name="cached_search", mime_type="application/json")(self.read_cached_search)
        _ = mcp.resource(CACHE_STATS_RESOURCE, name="cache_stats", mime_type="application/json")(self.read_cache_stats)

        return mcp
