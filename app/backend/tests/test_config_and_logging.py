import sys
import os
import json
import pytest

# Add backend to path so we can import modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Settings
from caching.service import CacheLimits
from query_logging.query_logger import log_query, log_query_async


def test_settings_defaults(monkeypatch):
    for name in ("LOG_LEVEL", "RESPONSE_CACHE_MAX_ENTRIES", "ATTACHMENT_CACHE_MAX_BYTES", "PERPLEXITY_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings.from_env()
    assert settings.log_level == "info"
    assert settings.cache_limits == CacheLimits()
    assert settings.perplexity_api_key == ""

def test_settings_cache_bounds_from_env(monkeypatch):
    monkeypatch.setenv("RESPONSE_CACHE_MAX_ENTRIES", "42")
    monkeypatch.setenv("ATTACHMENT_CACHE_MAX_BYTES", "2048")
    limits = Settings.from_env().cache_limits
    assert limits.response_max_entries == 42
    assert limits.attachment_max_size == 2048

def test_settings_invalid_values_fall_back(monkeypatch):
    """Verify that bad env values are warned about and replaced by defaults."""
    monkeypatch.setenv("LOG_LEVEL", "verbose")
    monkeypatch.setenv("RESPONSE_CACHE_MAX_ENTRIES", "lots")
    settings = Settings.from_env()
    assert settings.log_level == "info"
    assert settings.cache_limits.response_max_entries == 500

def test_settings_fractional_timeout(monkeypatch):
    """Verify that the upstream timeout accepts fractional seconds."""
    monkeypatch.setenv("PERPLEXITY_TIMEOUT_SECONDS", "30.5")
    assert Settings.from_env().perplexity_timeout_seconds == 30.5
    monkeypatch.setenv("PERPLEXITY_TIMEOUT_SECONDS", "soon")
    assert Settings.from_env().perplexity_timeout_seconds == 600.0

def test_log_query_appends_jsonl(tmp_path):
    path = tmp_path / "queries.jsonl"
    log_query({"query": "a", "cache_hit": False}, str(path))
    log_query({"query": "b", "cache_hit": True}, str(path))
    lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [l["query"] for l in lines] == ["a", "b"]
    assert lines[1]["cache_hit"] is True

@pytest.mark.asyncio
async def test_log_query_async_uses_env_path(tmp_path, monkeypatch):
    path = tmp_path / "async.jsonl"
    monkeypatch.setenv("QUERY_LOG_FILE", str(path))
    await log_query_async({"query": "c"})
    assert json.loads(path.read_text(encoding="utf-8"))["query"] == "c"
