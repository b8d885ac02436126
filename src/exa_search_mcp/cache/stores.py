import contextlib
from abc import ABC, abstractmethod
from pathlib import Path
from typing import override
from uuid import uuid4

import aiofiles
import aiofiles.os

from exa_search_mcp.models.errors import KVStoreKeyOutsideRootError


class BaseKVStore(ABC):
    """A minimal async key-value store.

    `ttl` is passed through to backends that can expire entries natively. Callers must not rely on
    it: the result cache enforces expiry itself.
    """

    @abstractmethod
    async def put(self, key: str, value: str, ttl: int | None = None) -> None: ...

    @abstractmethod
    async def get(self, key: str) -> str | None: ...

    @abstractmethod
    async def delete(self, key: str) -> bool: ...

    @abstractmethod
    async def list_keys(self) -> list[str]: ...


class MemoryKVStore(BaseKVStore):
    entries: dict[str, str]

    def __init__(self):
        self.entries = {}

    @override
    async def put(self, key: str, value: str, ttl: int | None = None) -> None:
        self.entries[key] = value

    @override
    async def get(self, key: str) -> str | None:
        return self.entries.get(key)

    @override
    async def delete(self, key: str) -> bool:
        return self.entries.pop(key, None) is not None

    @override
    async def list_keys(self) -> list[str]:
        return list(self.entries)


class FileKVStore(BaseKVStore):
    """Stores each value in its own `<key>.json` file under `directory`."""

    directory: Path

    def __init__(self, directory: Path):
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)

    def _resolve_and_validate(self, key: str) -> Path:
        """Resolve the file for a key and check that it is within the store directory."""
        root = self.directory.resolve()
        path = (root / f"{key}.json").resolve()

        if path.parent != root:
            raise KVStoreKeyOutsideRootError(key, str(root))

        return path

    @override
    async def put(self, key: str, value: str, ttl: int | None = None) -> None:
        path = self._resolve_and_validate(key)

        # Readers only ever see a complete file
        temp_path = path.with_name(f".{path.stem}.{uuid4().hex}.tmp")

        try:
            async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
                await f.write(value)

            await aiofiles.os.replace(temp_path, path)
        except Exception:
            with contextlib.suppress(FileNotFoundError):
                await aiofiles.os.remove(temp_path)
            raise

    @override
    async def get(self, key: str) -> str | None:
        path = self._resolve_and_validate(key)

        try:
            async with aiofiles.open(path, encoding="utf-8") as f:
                return await f.read()
        except FileNotFoundError:
            return None

    @override
    async def delete(self, key: str) -> bool:
        path = self._resolve_and_validate(key)

        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return False

        return True

    @override
    async def list_keys(self) -> list[str]:
        names: list[str] = await aiofiles.os.listdir(self.directory)

        return [name.removesuffix(".json") for name in names if name.endswith(".json") and not name.startswith(".")]
