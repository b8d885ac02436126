from exa_search_mcp.models.search import CamelModel, LiveCrawl, SearchResult, UpstreamMetadata


class ExaTextContentsOptions(CamelModel):
    max_characters: int | None = None


class ExaContentsOptions(CamelModel):
    text: ExaTextContentsOptions | bool = True
    livecrawl: LiveCrawl = LiveCrawl.FALLBACK


class ExaSearchRequest(CamelModel):
    query: str
    type: str = "auto"
    num_results: int = 5
    include_domains: list[str] | None = None
    contents: ExaContentsOptions = ExaContentsOptions()


class ExaSearchResponse(CamelModel):
    request_id: str | None = None
    resolved_search_type: str | None = None
    search_type: str | None = None
    autoprompt_string: str | None = None
    results: list[SearchResult] = []

    def to_upstream_metadata(self) -> UpstreamMetadata:
        return UpstreamMetadata(
            request_id=self.request_id,
            search_type=self.resolved_search_type or self.search_type,
            autoprompt_string=self.autoprompt_string,
        )


class ExaContentsRequest(CamelModel):
    urls: list[str]
    text: ExaTextContentsOptions | bool = True
    livecrawl: LiveCrawl = LiveCrawl.AUTO


class ExaContentsResponse(CamelModel):
    request_id: str | None = None
    results: list[SearchResult] = []
