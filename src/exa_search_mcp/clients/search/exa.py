import os
from typing import Any, override

from aiohttp import ClientResponse, ClientSession, ClientTimeout, ContentTypeError, TCPConnector
from fastmcp.utilities.logging import get_logger
from pydantic import BaseModel

from exa_search_mcp.clients.search.base import BaseSearchClient
from exa_search_mcp.models.errors import ExaAPIError
from exa_search_mcp.models.search import LiveCrawl
from exa_search_mcp.models.upstream import (
    ExaContentsOptions,
    ExaContentsRequest,
    ExaContentsResponse,
    ExaSearchRequest,
    ExaSearchResponse,
    ExaTextContentsOptions,
)
from exa_search_mcp.utils.tokens import estimate_model_tokens

logger = get_logger(__name__)

EXA_BASE_URL = "https://api.exa.ai"
EXA_SEARCH_ENDPOINT = "/search"
EXA_CONTENTS_ENDPOINT = "/contents"

DEFAULT_TIMEOUT_SECONDS = 25
DEFAULT_CONNECTION_LIMIT = 50


class ExaClient(BaseSearchClient):
    session: ClientSession | None

    def __init__(
        self,
        api_key: str | None = None,
        session: ClientSession | None = None,
        base_url: str = EXA_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        if not (exa_api_key := api_key or os.getenv("EXA_API_KEY")):
            msg = "EXA_API_KEY is not set"
            raise ValueError(msg)

        self.api_key = exa_api_key
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _get_session(self) -> ClientSession:
        # Shared by every request made through this client
        if self.session is None or self.session.closed:
            self.session = ClientSession(
                headers={
                    "accept": "application/json",
                    "content-type": "application/json",
                    "x-api-key": self.api_key,
                },
                timeout=ClientTimeout(total=self.timeout),
                connector=TCPConnector(limit=DEFAULT_CONNECTION_LIMIT, keepalive_timeout=30),
            )

        return self.session

    @staticmethod
    async def _error_message(response: ClientResponse) -> str:
        try:
            payload: Any = await response.json()
        except (ContentTypeError, ValueError):
            return response.reason or "Unknown error"

        if isinstance(payload, dict):
            for key in ("message", "error"):
                if isinstance(detail := payload.get(key), str):  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]
                    return detail

        return response.reason or "Unknown error"

    async def _post(self, endpoint: str, request: BaseModel) -> Any:
        session = self._get_session()

        async with session.post(
            url=f"{self.base_url}{endpoint}",
            json=request.model_dump(mode="json", by_alias=True, exclude_none=True),
        ) as response:
            if not response.ok:
                raise ExaAPIError(status=response.status, message=await self._error_message(response))

            return await response.json()

    async def exa_search(self, request: ExaSearchRequest) -> ExaSearchResponse:
        logger.debug(f"Sending Exa search request for {request.query!r} ({request.num_results} results)")

        search_response = ExaSearchResponse.model_validate(await self._post(EXA_SEARCH_ENDPOINT, request))

        logger.info(
            f"Exa search {search_response.request_id} for {request.query!r} returned {len(search_response.results)} results "
            f"(~{estimate_model_tokens(search_response.results)} tokens)"
        )

        return search_response

    @override
    async def search(
        self,
        query: str,
        num_results: int = 5,
        *,
        search_type: str = "auto",
        include_domains: list[str] | None = None,
        max_characters: int | None = None,
        live_crawl: LiveCrawl = LiveCrawl.FALLBACK,
    ) -> ExaSearchResponse:
        request = ExaSearchRequest(
            query=query,
            type=search_type,
            num_results=num_results,
            include_domains=include_domains or None,
            contents=ExaContentsOptions(
                text=ExaTextContentsOptions(max_characters=max_characters),
                livecrawl=live_crawl,
            ),
        )

        return await self.exa_search(request)

    async def exa_contents(self, request: ExaContentsRequest) -> ExaContentsResponse:
        logger.debug(f"Sending Exa contents request for {len(request.urls)} urls")

        contents_response = ExaContentsResponse.model_validate(await self._post(EXA_CONTENTS_ENDPOINT, request))

        logger.info(
            f"Exa contents {contents_response.request_id} returned {len(contents_response.results)} pages "
            f"(~{estimate_model_tokens(contents_response.results)} tokens)"
        )

        return contents_response

    @override
    async def contents(
        self,
        urls: list[str],
        *,
        max_characters: int | None = None,
        live_crawl: LiveCrawl = LiveCrawl.AUTO,
    ) -> ExaContentsResponse:
        request = ExaContentsRequest(
            urls=urls,
            text=ExaTextContentsOptions(max_characters=max_characters),
            livecrawl=live_crawl,
        )

        return await self.exa_contents(request)

    @override
    async def close(self) -> None:
        if self.session is not None and not self.session.closed:
            await self.session.close()
