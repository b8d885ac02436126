from pathlib import Path

import pytest

from exa_search_mcp.cache.stores import FileKVStore, MemoryKVStore
from exa_search_mcp.main import DEFAULT_CACHE_DIR, build_kv_store, cli, select_profiles
from exa_search_mcp.models.errors import ConfigurationError
from exa_search_mcp.servers.profiles import DEFAULT_PROFILES, GITHUB_SEARCH, WEB_SEARCH


def test_cli():
    assert cli is not None
    assert DEFAULT_CACHE_DIR.name == "exa-mcp-cache"


def test_select_all_profiles():
    assert select_profiles(()) == DEFAULT_PROFILES


def test_select_some_profiles():
    assert select_profiles(("github_search", "web_search", "github_search")) == (GITHUB_SEARCH, WEB_SEARCH)


def test_select_url_content_only():
    assert select_profiles(("url_content",)) == ()
    assert select_profiles(("url_content", "web_search")) == (WEB_SEARCH,)


def test_select_unknown_profile():
    with pytest.raises(ConfigurationError, match="Unknown tools: bing_search"):
        _ = select_profiles(("web_search", "bing_search"))

    with pytest.raises(ConfigurationError, match="Available tools: .*url_content"):
        _ = select_profiles(("bing_search",))


def test_build_kv_store(tmp_path: Path):
    assert isinstance(build_kv_store(tmp_path, memory_cache=True), MemoryKVStore)

    file_store = build_kv_store(tmp_path / "cache", memory_cache=False)

    assert isinstance(file_store, FileKVStore)
    assert (tmp_path / "cache").is_dir()
