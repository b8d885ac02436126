import json

import pytest
from dirty_equals import IsInt, IsStr
from inline_snapshot import snapshot

from exa_search_mcp.cache.results import ResultCache
from exa_search_mcp.cache.stores import MemoryKVStore
from exa_search_mcp.formatting.formatter import (
    NO_RESULTS_MESSAGE,
    ResponseFormatter,
    calculate_max_characters,
    render_error,
    truncate_text,
)
from exa_search_mcp.models.search import ContentLevel, OutputFormat, SearchResult
from exa_search_mcp.utils.tokens import estimate_tokens
from tests.conftest import make_result


@pytest.mark.parametrize(
    ("result_count", "expected"),
    [
        (0, 5000),
        (1, 5000),
        (10, 5000),
        (20, 3800),
        (100, 760),
        (1000, 500),
    ],
)
def test_calculate_max_characters(result_count: int, expected: int):
    assert calculate_max_characters(result_count, 20_000) == expected


def test_truncate_text():
    assert truncate_text("hello", 10) == ("hello", False)
    assert truncate_text("hello", 5) == ("hello", False)
    assert truncate_text("hello world", 8) == ("hello...", True)


def test_truncate_text_never_exceeds_limit():
    for limit in range(0, 20):
        text, _ = truncate_text("abcdefghijklmnopqrstuvwxyz", limit)
        assert len(text) <= max(limit, len("..."))


async def test_no_results_creates_no_cache_entry(formatter: ResponseFormatter, memory_store: MemoryKVStore):
    rendered = await formatter.render([], "nothing matches this")

    assert rendered.text == NO_RESULTS_MESSAGE
    assert rendered.cache_id is None
    assert rendered.metadata.total_results == 0
    assert memory_store.entries == {}


async def test_no_results_json(formatter: ResponseFormatter, memory_store: MemoryKVStore):
    rendered = await formatter.render([], "nothing matches this", output_format=OutputFormat.JSON)

    assert json.loads(rendered.text) == snapshot(
        {
            "metadata": {
                "query": "nothing matches this",
                "totalResults": 0,
                "returnedResults": 0,
                "contentLevel": "standard",
                "tokenEstimate": 0,
                "truncated": False,
            },
            "results": [],
        }
    )
    assert memory_store.entries == {}


async def test_render_caches_results(formatter: ResponseFormatter, result_cache: ResultCache, search_results: list[SearchResult]):
    rendered = await formatter.render(search_results, "python asyncio")

    assert rendered.cache_id is not None
    assert f"**Cache ID**: `{rendered.cache_id}`" in rendered.text
    assert "index [0-4] with the retrieve_result tool" in rendered.text
    assert "Cache expires in 5 minutes" in rendered.text

    entry = await result_cache.lookup(rendered.cache_id)
    assert list(entry.results) == search_results


async def test_render_summary(formatter: ResponseFormatter, search_results: list[SearchResult]):
    rendered = await formatter.render(search_results, "python asyncio", content_level=ContentLevel.SUMMARY)

    assert "- Content Level: SUMMARY" in rendered.text
    assert "- Results: 5/5\n" in rendered.text
    assert "[0] Article 0" in rendered.text
    assert "[4] Article 4" in rendered.text
    assert "URL: https://example.com/articles/3" in rendered.text
    assert "Score: 0.90" in rendered.text
    assert "**Author**" not in rendered.text

    assert rendered.metadata.truncated
    assert rendered.metadata.returned_results == 5


async def test_render_standard_truncates_content(formatter: ResponseFormatter):
    results = [make_result(i).model_copy(update={"text": "a" * 8000}) for i in range(10)]

    rendered = await formatter.render(results, "python asyncio", content_level=ContentLevel.STANDARD, max_total_tokens=20_000)

    assert "a" * 4997 + "..." in rendered.text
    assert "a" * 4998 not in rendered.text
    assert rendered.text.count("### Result") == 10
    assert rendered.metadata.truncated
    assert "Warning: Content truncated to prevent token overflow" in rendered.text


async def test_render_full(formatter: ResponseFormatter, search_results: list[SearchResult]):
    rendered = await formatter.render(search_results, "python asyncio", content_level=ContentLevel.FULL)

    assert "**ID**: https://example.com/articles/0" in rendered.text
    assert "**Image**: https://example.com/images/0.png" in rendered.text
    assert "**Full Content**:" in rendered.text
    assert search_results[0].text in rendered.text  # pyright: ignore[reportOperatorIssue]
    assert not rendered.metadata.truncated


async def test_summary_is_smaller_than_full(formatter: ResponseFormatter):
    results = [make_result(i, text_length=3000) for i in range(5)]

    summary = await formatter.render(results, "python asyncio", content_level=ContentLevel.SUMMARY)
    full = await formatter.render(results, "python asyncio", content_level=ContentLevel.FULL)

    assert summary.metadata.token_estimate.estimated_tokens < full.metadata.token_estimate.estimated_tokens


async def test_render_reports_over_budget(formatter: ResponseFormatter, search_results: list[SearchResult]):
    rendered = await formatter.render(search_results, "python asyncio", content_level=ContentLevel.FULL, max_total_tokens=100)

    assert rendered.metadata.over_budget
    assert "Warning: Response exceeds the 100 token budget" in rendered.text


async def test_render_handles_missing_fields(formatter: ResponseFormatter):
    result = SearchResult(id="1", url="https://example.com")

    rendered = await formatter.render([result], "python asyncio", content_level=ContentLevel.STANDARD)

    assert "### Result 0: Untitled" in rendered.text
    assert "**Published**: Unknown" in rendered.text
    assert "**Score**: N/A" in rendered.text
    assert "No content available" in rendered.text


async def test_render_json_summary(formatter: ResponseFormatter, search_results: list[SearchResult]):
    rendered = await formatter.render(
        search_results[:2], "python asyncio", content_level=ContentLevel.SUMMARY, output_format=OutputFormat.JSON
    )

    payload = json.loads(rendered.text)

    assert payload["metadata"] == {
        "cacheId": rendered.cache_id,
        "query": "python asyncio",
        "totalResults": 2,
        "returnedResults": 2,
        "contentLevel": "summary",
        "tokenEstimate": IsInt(gt=0),
        "truncated": True,
        "ttlSeconds": 300,
    }
    assert payload["results"][1] == {
        "index": 1,
        "title": "Article 1",
        "url": "https://example.com/articles/1",
        "publishedDate": "2025-01-15T00:00:00.000Z",
        "text": IsStr(max_length=200),
        "score": 0.89,
    }


async def test_render_json_full(formatter: ResponseFormatter, search_results: list[SearchResult]):
    rendered = await formatter.render(search_results[:1], "python asyncio", content_level=ContentLevel.FULL, output_format=OutputFormat.JSON)

    result = json.loads(rendered.text)["results"][0]

    assert result["id"] == "https://example.com/articles/0"
    assert result["author"] == "Author 0"
    assert result["favicon"] == "https://example.com/favicon.ico"
    assert result["text"] == search_results[0].text


def test_render_error():
    assert render_error("Invalid API key", "python asyncio") == snapshot(
        """\
## Search Error

**Error**: Invalid API key
**Query**: "python asyncio"

**Suggestions**:
- Check that the Exa API key is valid
- Verify the query format
- Try reducing num_results or max_chars_per_result
- Check Exa API status: https://status.exa.ai\
"""
    )


def test_render_error_caps_message():
    rendered = render_error("x" * 10_000, "q" * 10_000)

    assert len(rendered) < 1_500
    assert "x" * 497 + "..." in rendered


def test_render_single(formatter: ResponseFormatter, search_results: list[SearchResult]):
    rendered = formatter.render_single(search_results[2], 2, "exa-1700000000000-abc1234", 5)

    assert rendered.startswith("## Retrieved from Cache")
    assert "**Result**: index 2 (3 of 5)" in rendered
    assert "### Result 2: Article 2" in rendered
    assert search_results[2].text in rendered  # pyright: ignore[reportOperatorIssue]


def test_render_range_keeps_original_indices(formatter: ResponseFormatter, search_results: list[SearchResult]):
    rendered = formatter.render_range(search_results[2:4], 2, "exa-1700000000000-abc1234", 5)

    assert "**Results**: 2-3 of 5" in rendered
    assert "### Result 2: Article 2" in rendered
    assert "### Result 3: Article 3" in rendered
    assert "### Result 1:" not in rendered


def test_render_range_empty(formatter: ResponseFormatter):
    rendered = formatter.render_range([], 10, "exa-1700000000000-abc1234", 5)

    assert "none in the requested range. Valid range: 0-4" in rendered


async def test_markdown_header_reports_final_size(formatter: ResponseFormatter, search_results: list[SearchResult]):
    rendered = await formatter.render(search_results, "python asyncio", content_level=ContentLevel.STANDARD)

    estimate = estimate_tokens(rendered.text)

    assert rendered.metadata.token_estimate == estimate
    assert f"- Token Estimate: ~{estimate.estimated_tokens:,} tokens" in rendered.text
    assert f"- Characters: {estimate.characters:,}" in rendered.text


@pytest.mark.parametrize("content_level", list(ContentLevel))
async def test_json_token_estimate_covers_final_payload(
    formatter: ResponseFormatter, search_results: list[SearchResult], content_level: ContentLevel
):
    rendered = await formatter.render(search_results, "python asyncio", content_level=content_level, output_format=OutputFormat.JSON)

    reported = json.loads(rendered.text)["metadata"]["tokenEstimate"]

    assert reported == estimate_tokens(rendered.text).estimated_tokens
    assert reported == rendered.metadata.token_estimate.estimated_tokens


def test_render_error_with_url_subject():
    rendered = render_error("Crawling error (404): URL not found", "https://example.com/missing", subject="URL")

    assert "**Error**: Crawling error (404): URL not found" in rendered
    assert '**URL**: "https://example.com/missing"' in rendered
    assert "**Query**" not in rendered
