from pydantic import BaseModel, Field

from exa_search_mcp.models.search import CamelModel, ContentLevel, SearchResult


class TokenEstimate(BaseModel):
    characters: int
    words: int
    estimated_tokens: int


class CostEstimate(BaseModel):
    input_tokens: int
    estimated_cost_usd: float


class ResponseMetadata(BaseModel):
    total_results: int
    returned_results: int
    token_estimate: TokenEstimate
    truncated: bool = False
    over_budget: bool = False
    content_level: ContentLevel
    cost_estimate: CostEstimate


class RenderedResponse(BaseModel):
    text: str
    cache_id: str | None = None
    metadata: ResponseMetadata


class StructuredResult(CamelModel):
    """A result as it appears in a JSON response, trimmed to the requested content level."""

    index: int
    id: str | None = None
    title: str | None = None
    url: str
    published_date: str | None = None
    author: str | None = None
    text: str | None = None
    score: float | None = None
    image: str | None = None
    favicon: str | None = None

    @classmethod
    def from_search_result(cls, result: SearchResult, index: int, content_level: ContentLevel, text: str | None) -> "StructuredResult":
        structured = cls(
            index=index,
            title=result.title,
            url=result.url,
            published_date=result.published_date,
            text=text,
            score=result.score,
        )

        if content_level is ContentLevel.SUMMARY:
            return structured

        structured.author = result.author

        if content_level is ContentLevel.FULL:
            structured.id = result.id
            structured.image = result.image
            structured.favicon = result.favicon

        return structured


class StructuredMetadata(CamelModel):
    cache_id: str | None = None
    query: str
    total_results: int
    returned_results: int
    content_level: ContentLevel
    token_estimate: int = 0
    truncated: bool = False
    ttl_seconds: int | None = None


class StructuredResponse(CamelModel):
    metadata: StructuredMetadata
    results: list[StructuredResult] = Field(default_factory=list)


class CacheStats(BaseModel):
    total_cached: int
    oldest_created_at: int | None = None
    newest_created_at: int | None = None
