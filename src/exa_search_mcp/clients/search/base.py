from abc import ABC, abstractmethod

from exa_search_mcp.models.search import LiveCrawl
from exa_search_mcp.models.upstream import ExaContentsResponse, ExaSearchResponse


class BaseSearchClient(ABC):
    @abstractmethod
    async def search(
        self,
        query: str,
        num_results: int = 5,
        *,
        search_type: str = "auto",
        include_domains: list[str] | None = None,
        max_characters: int | None = None,
        live_crawl: LiveCrawl = LiveCrawl.FALLBACK,
    ) -> ExaSearchResponse: ...

    @abstractmethod
    async def contents(
        self,
        urls: list[str],
        *,
        max_characters: int | None = None,
        live_crawl: LiveCrawl = LiveCrawl.AUTO,
    ) -> ExaContentsResponse: ...

    async def close(self) -> None:  # noqa: B027
        """Release any connections held by the client."""
