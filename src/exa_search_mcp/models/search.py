from enum import StrEnum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from exa_search_mcp.models.errors import ResultIndexOutOfRangeError


class ContentLevel(StrEnum):
    SUMMARY = "summary"
    STANDARD = "standard"
    FULL = "full"


class OutputFormat(StrEnum):
    MARKDOWN = "markdown"
    JSON = "json"


class LiveCrawl(StrEnum):
    ALWAYS = "always"
    FALLBACK = "fallback"
    NEVER = "never"
    AUTO = "auto"


class CamelModel(BaseModel):
    """Accepts and emits the camelCase field names used by the Exa API."""

    model_config: ClassVar[ConfigDict] = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchResult(CamelModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    title: str | None = None
    url: str
    published_date: str | None = None
    author: str | None = None
    text: str | None = None
    score: float | None = None
    image: str | None = None
    favicon: str | None = None


class UpstreamMetadata(CamelModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    request_id: str | None = None
    search_type: str | None = None
    autoprompt_string: str | None = None


class CachedResultSet(CamelModel):
    """A snapshot of one search's results, held by the result cache until it expires or is evicted."""

    model_config: ClassVar[ConfigDict] = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    cache_id: str
    query: str
    created_at: int = Field(description="Creation time in milliseconds since the epoch.")
    ttl: int = Field(description="Time to live in milliseconds.")
    results: tuple[SearchResult, ...]
    metadata: UpstreamMetadata = Field(default_factory=UpstreamMetadata)

    @computed_field()
    @property
    def total_results(self) -> int:
        return len(self.results)

    def result_at(self, index: int) -> SearchResult:
        if not 0 <= index < self.total_results:
            raise ResultIndexOutOfRangeError(index, self.total_results)

        return self.results[index]

    def result_range(self, start: int, end: int) -> list[SearchResult]:
        """Results `[start, end)`, with the bounds clamped to the result set. Degenerate ranges are empty."""
        start = max(0, start)
        end = max(start, min(self.total_results, end))

        return list(self.results[start:end])

    def is_expired(self, now: int) -> bool:
        return now - self.created_at > self.ttl

    def expires_in(self, now: int) -> int:
        """Milliseconds until the entry expires, never negative."""
        return max(0, self.created_at + self.ttl - now)
