import math
from collections.abc import Sequence

from fastmcp.utilities.logging import get_logger

from exa_search_mcp.cache.results import ResultCache
from exa_search_mcp.models.responses import (
    RenderedResponse,
    ResponseMetadata,
    StructuredMetadata,
    StructuredResponse,
    StructuredResult,
)
from exa_search_mcp.models.search import ContentLevel, OutputFormat, SearchResult, UpstreamMetadata
from exa_search_mcp.utils.tokens import CHARACTERS_PER_TOKEN, estimate_cost, estimate_tokens, exceeds_safe_limit

logger = get_logger(__name__)

NO_RESULTS_MESSAGE = "No results found for your query."

DEFAULT_TOKEN_BUDGET = 20_000
DEFAULT_METADATA_OVERHEAD_TOKENS = 1_000

SUMMARY_PREVIEW_CHARS = 200
MIN_CHARS_PER_RESULT = 500
MAX_CHARS_PER_RESULT = 5_000

MAX_ERROR_MESSAGE_CHARS = 500

ELLIPSIS = "..."

MAX_ESTIMATE_PASSES = 5


def calculate_max_characters(
    result_count: int,
    max_total_tokens: int = DEFAULT_TOKEN_BUDGET,
    metadata_overhead: int = DEFAULT_METADATA_OVERHEAD_TOKENS,
) -> int:
    """Split a token budget evenly across results and convert it to a per-result character allowance.

    The allowance shrinks as the result count grows so that the response stays roughly the same size.
    It is clamped to [500, 5000] characters.
    """
    tokens_per_result = (max_total_tokens - metadata_overhead) / max(result_count, 1)
    characters = math.floor(tokens_per_result * CHARACTERS_PER_TOKEN)

    return max(MIN_CHARS_PER_RESULT, min(characters, MAX_CHARS_PER_RESULT))


def truncate_text(text: str, limit: int) -> tuple[str, bool]:
    """Truncate text to at most `limit` characters, ellipsis included. Returns the text and whether it was cut."""
    if len(text) <= limit:
        return text, False

    return text[: max(0, limit - len(ELLIPSIS))].rstrip() + ELLIPSIS, True


def _score(result: SearchResult) -> str:
    return f"{result.score:.2f}" if result.score is not None else "N/A"


def _title(result: SearchResult) -> str:
    return result.title or "Untitled"


def _describe_ttl(ttl: int) -> str:
    seconds = ttl // 1000

    if seconds % 60 == 0 and seconds >= 60:
        minutes = seconds // 60
        return f"{minutes} minute{'s' if minutes != 1 else ''}"

    return f"{seconds} seconds"


def render_summary_result(result: SearchResult, index: int, preview: str | None) -> str:
    lines = [
        f"[{index}] {_title(result)}",
        f"URL: {result.url}",
        f"Published: {result.published_date or 'Unknown'}",
        f"Preview: {preview or 'No preview available'}",
        f"Score: {_score(result)}",
        "",
    ]

    return "\n".join(lines)


def render_standard_result(result: SearchResult, index: int, content: str | None) -> str:
    lines = [
        f"### Result {index}: {_title(result)}",
        "",
        f"**URL**: {result.url}",
        f"**Published**: {result.published_date or 'Unknown'}",
        f"**Author**: {result.author or 'Unknown'}",
        f"**Score**: {_score(result)}",
        "",
        "**Content**:",
        content or "No content available",
        "",
    ]

    return "\n".join(lines)


def render_full_result(result: SearchResult, index: int) -> str:
    lines = [
        f"### Result {index}: {_title(result)}",
        "",
        f"**ID**: {result.id}",
        f"**URL**: {result.url}",
        f"**Published**: {result.published_date or 'Unknown'}",
        f"**Author**: {result.author or 'Unknown'}",
        f"**Score**: {_score(result)}",
    ]

    if result.image:
        lines.append(f"**Image**: {result.image}")

    if result.favicon:
        lines.append(f"**Favicon**: {result.favicon}")

    lines.extend(["", "**Full Content**:", "", result.text or "No content available", ""])

    return "\n".join(lines)


def render_error(error: BaseException | str, query: str | None = None, *, subject: str = "Query") -> str:
    """Render a failed request as a short, fixed-shape message with remediation hints.

    `subject` labels what the request was about, e.g. the search query or the URL being extracted.
    """

    message, _ = truncate_text(str(error), MAX_ERROR_MESSAGE_CHARS)

    lines = ["## Search Error", "", f"**Error**: {message}"]

    if query:
        query_preview, _ = truncate_text(query, MAX_ERROR_MESSAGE_CHARS)
        lines.append(f'**{subject}**: "{query_preview}"')

    lines.extend(
        [
            "",
            "**Suggestions**:",
            "- Check that the Exa API key is valid",
            "- Verify the query format",
            "- Try reducing num_results or max_chars_per_result",
            "- Check Exa API status: https://status.exa.ai",
        ]
    )

    return "\n".join(lines)


class ResponseFormatter:
    """Renders search results within a token budget and caches them for follow-up retrieval."""

    result_cache: ResultCache
    metadata_overhead: int
    summary_preview_chars: int

    def __init__(
        self,
        result_cache: ResultCache,
        *,
        metadata_overhead: int = DEFAULT_METADATA_OVERHEAD_TOKENS,
        summary_preview_chars: int = SUMMARY_PREVIEW_CHARS,
    ):
        self.result_cache = result_cache
        self.metadata_overhead = metadata_overhead
        self.summary_preview_chars = summary_preview_chars

    def chars_per_result(self, result_count: int, max_total_tokens: int) -> int:
        return calculate_max_characters(result_count, max_total_tokens, self.metadata_overhead)

    def _content_for_level(self, result: SearchResult, content_level: ContentLevel, chars_per_result: int) -> tuple[str | None, bool]:
        if result.text is None:
            return None, False

        match content_level:
            case ContentLevel.SUMMARY:
                return truncate_text(result.text.strip(), self.summary_preview_chars)
            case ContentLevel.STANDARD:
                return truncate_text(result.text.strip(), chars_per_result)
            case ContentLevel.FULL:
                return result.text, False

    def render_result(self, result: SearchResult, index: int, content_level: ContentLevel, chars_per_result: int) -> tuple[str, bool]:
        """Render a single result at a content level. Returns the text and whether its content was truncated."""

        content, truncated = self._content_for_level(result, content_level, chars_per_result)

        match content_level:
            case ContentLevel.SUMMARY:
                return render_summary_result(result, index, content), truncated
            case ContentLevel.STANDARD:
                return render_standard_result(result, index, content), truncated
            case ContentLevel.FULL:
                return render_full_result(result, index), truncated

    def _response_metadata(
        self, text: str, total_results: int, content_level: ContentLevel, truncated: bool, max_total_tokens: int
    ) -> ResponseMetadata:
        token_estimate = estimate_tokens(text)

        return ResponseMetadata(
            total_results=total_results,
            returned_results=total_results,
            token_estimate=token_estimate,
            truncated=truncated,
            over_budget=exceeds_safe_limit(token_estimate.estimated_tokens, max_total_tokens),
            content_level=content_level,
            cost_estimate=estimate_cost(token_estimate.estimated_tokens),
        )

    def _render_header(self, metadata: ResponseMetadata, cache_id: str, max_total_tokens: int) -> str:
        lines = [
            "## Response Metadata",
            "",
            f"- Results: {metadata.returned_results}/{metadata.total_results}",
            f"- Content Level: {metadata.content_level.upper()}",
            f"- Token Estimate: ~{metadata.token_estimate.estimated_tokens:,} tokens",
            f"- Characters: {metadata.token_estimate.characters:,}",
            f"- Cost Estimate: ~${metadata.cost_estimate.estimated_cost_usd:.4f} (input only)",
        ]

        if metadata.truncated:
            lines.append("- Warning: Content truncated to prevent token overflow")

        if metadata.over_budget:
            lines.append(f"- Warning: Response exceeds the {max_total_tokens:,} token budget, use a lower content level or fewer results")

        lines.extend(
            [
                "",
                f"**Cache ID**: `{cache_id}`",
                "",
                "**Progressive Disclosure**",
                f"- Use cache ID + result index [0-{metadata.total_results - 1}] with the retrieve_result tool",
                f"- Cache expires in {_describe_ttl(self.result_cache.default_ttl)}",
                "",
                "---",
                "",
            ]
        )

        return "\n".join(lines)

    async def render(
        self,
        results: Sequence[SearchResult],
        query: str,
        *,
        content_level: ContentLevel = ContentLevel.STANDARD,
        max_total_tokens: int = DEFAULT_TOKEN_BUDGET,
        output_format: OutputFormat = OutputFormat.MARKDOWN,
        upstream: UpstreamMetadata | None = None,
    ) -> RenderedResponse:
        """Cache a result set and render it at the requested content level."""

        if not results:
            return self._render_no_results(query, content_level, output_format)

        cache_id = await self.result_cache.store(query, results, upstream)

        if output_format is OutputFormat.JSON:
            return self._render_structured(results, query, cache_id, content_level, max_total_tokens)

        chars_per_result = self.chars_per_result(len(results), max_total_tokens)
        rendered = [self.render_result(result, i, content_level, chars_per_result) for i, result in enumerate(results)]

        body = "\n".join(text for text, _ in rendered)
        truncated = any(was_truncated for _, was_truncated in rendered)

        # The header reports the size of the whole payload, itself included
        metadata = self._response_metadata(body, len(results), content_level, truncated, max_total_tokens)
        text = self._render_header(metadata, cache_id, max_total_tokens) + body

        for _ in range(MAX_ESTIMATE_PASSES):
            final_metadata = self._response_metadata(text, len(results), content_level, truncated, max_total_tokens)

            if final_metadata.token_estimate == metadata.token_estimate:
                break

            metadata = final_metadata
            text = self._render_header(metadata, cache_id, max_total_tokens) + body

        metadata = self._response_metadata(text, len(results), content_level, truncated, max_total_tokens)

        if metadata.over_budget:
            logger.warning(f"Response for {query!r} is ~{metadata.token_estimate.estimated_tokens} tokens, over the {max_total_tokens} budget")

        return RenderedResponse(text=text, cache_id=cache_id, metadata=metadata)

    def _render_structured(
        self, results: Sequence[SearchResult], query: str, cache_id: str, content_level: ContentLevel, max_total_tokens: int
    ) -> RenderedResponse:
        chars_per_result = self.chars_per_result(len(results), max_total_tokens)

        structured_results: list[StructuredResult] = []
        truncated = False

        for i, result in enumerate(results):
            content, was_truncated = self._content_for_level(result, content_level, chars_per_result)
            truncated = truncated or was_truncated
            structured_results.append(StructuredResult.from_search_result(result, i, content_level, content))

        structured = StructuredResponse(
            metadata=StructuredMetadata(
                cache_id=cache_id,
                query=query,
                total_results=len(results),
                returned_results=len(results),
                content_level=content_level,
                truncated=truncated,
                ttl_seconds=self.result_cache.default_ttl // 1000,
            ),
            results=structured_results,
        )

        # The reported estimate is part of the payload it measures
        text = self._dump(structured)

        for _ in range(MAX_ESTIMATE_PASSES):
            if (estimated := estimate_tokens(text).estimated_tokens) == structured.metadata.token_estimate:
                break

            structured.metadata.token_estimate = estimated
            text = self._dump(structured)

        return RenderedResponse(
            text=text,
            cache_id=cache_id,
            metadata=self._response_metadata(text, len(results), content_level, truncated, max_total_tokens),
        )

    def _render_no_results(self, query: str, content_level: ContentLevel, output_format: OutputFormat) -> RenderedResponse:
        if output_format is OutputFormat.JSON:
            text = self._dump(
                StructuredResponse(
                    metadata=StructuredMetadata(query=query, total_results=0, returned_results=0, content_level=content_level)
                )
            )
        else:
            text = NO_RESULTS_MESSAGE

        token_estimate = estimate_tokens(text)

        return RenderedResponse(
            text=text,
            metadata=ResponseMetadata(
                total_results=0,
                returned_results=0,
                token_estimate=token_estimate,
                content_level=content_level,
                cost_estimate=estimate_cost(token_estimate.estimated_tokens),
            ),
        )

    @staticmethod
    def _dump(structured: StructuredResponse) -> str:
        return structured.model_dump_json(by_alias=True, exclude_none=True, indent=2)

    def render_single(self, result: SearchResult, index: int, cache_id: str, total_results: int) -> str:
        """Render one cached result in full, annotated with its position in the result set."""

        header = [
            "## Retrieved from Cache",
            "",
            f"**Cache ID**: `{cache_id}`",
            f"**Result**: index {index} ({index + 1} of {total_results})",
            "",
            "---",
            "",
        ]

        return "\n".join(header) + render_full_result(result, index)

    def render_range(
        self,
        results: Sequence[SearchResult],
        start: int,
        cache_id: str,
        total_results: int,
        content_level: ContentLevel = ContentLevel.STANDARD,
        max_total_tokens: int = DEFAULT_TOKEN_BUDGET,
    ) -> str:
        """Render a slice of a cached result set, keeping each result's original index."""

        header = ["## Retrieved from Cache", "", f"**Cache ID**: `{cache_id}`"]

        if not results:
            header.append(f"**Results**: none in the requested range. Valid range: 0-{total_results - 1}")
            return "\n".join(header)

        header.extend(
            [
                f"**Results**: {start}-{start + len(results) - 1} of {total_results}",
                f"**Content Level**: {content_level.upper()}",
                "",
                "---",
                "",
            ]
        )

        chars_per_result = self.chars_per_result(len(results), max_total_tokens)
        body = "\n".join(
            self.render_result(result, start + offset, content_level, chars_per_result)[0] for offset, result in enumerate(results)
        )

        return "\n".join(header) + body
