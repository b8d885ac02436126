from pathlib import Path

import pytest

from exa_search_mcp.cache.results import ResultCache
from exa_search_mcp.cache.stores import FileKVStore, MemoryKVStore
from exa_search_mcp.formatting.formatter import ResponseFormatter
from exa_search_mcp.models.search import SearchResult

START_TIME_MS = 1_700_000_000_000


class FakeClock:
    """A millisecond clock that only moves when told to."""

    def __init__(self, now: int = START_TIME_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, milliseconds: int) -> None:
        self.now += milliseconds


def make_result(index: int, text_length: int = 300) -> SearchResult:
    return SearchResult(
        id=f"https://example.com/articles/{index}",
        title=f"Article {index}",
        url=f"https://example.com/articles/{index}",
        published_date="2025-01-15T00:00:00.000Z",
        author=f"Author {index}",
        text=(f"Paragraph about topic {index}. " * text_length)[:text_length],
        score=round(0.9 - index * 0.01, 2),
        image=f"https://example.com/images/{index}.png",
        favicon="https://example.com/favicon.ico",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store() -> MemoryKVStore:
    return MemoryKVStore()


@pytest.fixture
def file_store(tmp_path: Path) -> FileKVStore:
    return FileKVStore(directory=tmp_path / "cache")


@pytest.fixture
def result_cache(memory_store: MemoryKVStore, clock: FakeClock) -> ResultCache:
    return ResultCache(kv_store=memory_store, clock=clock)


@pytest.fixture
def formatter(result_cache: ResultCache) -> ResponseFormatter:
    return ResponseFormatter(result_cache=result_cache)


@pytest.fixture
def search_results() -> list[SearchResult]:
    return [make_result(i) for i in range(5)]
