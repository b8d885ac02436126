from typing import Annotated

from pydantic import Field

from exa_search_mcp.models.search import ContentLevel, LiveCrawl, OutputFormat

MAX_NUM_RESULTS = 20

QUERY = Annotated[str, Field(description="The search query. For example, 'OpenAI GPT-5 release' or 'CRISPR gene editing'.")]

NUM_RESULTS = Annotated[
    int | None,
    Field(
        ge=1,
        le=MAX_NUM_RESULTS,
        description="The number of results to return (1-20). Defaults to 5 for the summary level and 3 for standard and full.",
    ),
]

CONTENT_LEVEL = Annotated[
    ContentLevel | None,
    Field(
        description=(
            "Detail level: summary (~150 tokens/result), standard (~500 tokens/result), full (~1500 tokens/result, may exceed the "
            "token budget). Start with summary and retrieve individual results with `retrieve_result`."
        )
    ),
]

OUTPUT_FORMAT = Annotated[
    OutputFormat,
    Field(description="The response format: markdown (human-readable) or json (for filtering or transforming the results)."),
]

LIVE_CRAWL = Annotated[
    LiveCrawl | None,
    Field(
        description=(
            "Content freshness: 'always' crawls live, 'fallback' crawls only when no cached copy exists, "
            "'never' uses cached copies only, 'auto' lets the search provider decide."
        )
    ),
]

MAX_CHARS_PER_RESULT = Annotated[
    int | None,
    Field(
        ge=100,
        le=10_000,
        description="The maximum characters of page text to fetch per result. Defaults to an allowance computed from the token budget.",
    ),
]

CACHE_ID = Annotated[str, Field(description="The cache ID returned by a previous search, for example 'exa-1700000000000-abc1234'.")]

RESULT_INDEX = Annotated[int, Field(description="The zero-based index of the result within the cached search.")]

START_INDEX = Annotated[int, Field(description="The zero-based index of the first result to return.")]

END_INDEX = Annotated[int, Field(description="The zero-based index one past the last result to return.")]

URL = Annotated[str, Field(description="The URL to extract content from, for example 'https://example.com/article'.")]

URL_MAX_CHARACTERS = Annotated[
    int | None,
    Field(ge=1_000, le=10_000, description="The maximum characters of page text to extract (1000-10000). Defaults to 3000."),
]
