from fastmcp.exceptions import ToolError


class ResultCacheError(Exception):
    """A base exception for the ResultCache."""

    msg: str

    def __init__(self, msg: str):
        self.msg = msg
        super().__init__(msg)

    def __str__(self) -> str:
        return self.msg


class InvalidCacheIdError(ResultCacheError):
    """An exception for when a cache id does not match the generated format."""

    def __init__(self, cache_id: str, prefix: str):
        super().__init__(f"Invalid cache ID format: {cache_id!r}. Expected format: {prefix}-<timestamp>-<alphanumeric>")


class CacheEntryNotFoundError(ResultCacheError):
    """An exception for when a cache entry never existed or has expired."""

    def __init__(self, cache_id: str):
        super().__init__(
            f"Cache entry {cache_id} was not found or has expired. Cached results expire after a few minutes. "
            "Re-run the original search to get a new cache ID."
        )


class ResultIndexOutOfRangeError(ResultCacheError):
    """An exception for when a result index is outside of a cached result set."""

    def __init__(self, index: int, total: int):
        super().__init__(f"Index {index} is out of range. Valid range: 0-{total - 1} ({total} results cached).")


class KVStoreError(Exception):
    pass


class KVStoreKeyOutsideRootError(KVStoreError):
    def __init__(self, key: str, root: str):
        super().__init__(f"Key {key!r} resolves outside of the store directory {root}")


class ExaClientError(Exception):
    pass


class ExaAPIError(ExaClientError):
    status: int
    message: str

    def __init__(self, status: int, message: str):
        self.status = status
        self.message = message
        super().__init__(f"Exa API returned HTTP {status}: {message}")


class ConfigurationError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class SearchToolError(ToolError):
    pass


class UpstreamSearchToolError(SearchToolError):
    pass


class RetrieveToolError(SearchToolError):
    pass
