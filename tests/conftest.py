"""Shared fixtures for the WeCom message client tests."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from wecom_message.api import TokenCache, WeComClient
from wecom_message.core import WeComConfig


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path):
    """Keep WECOM_* variables and .env files of the host out of the tests."""
    import os

    for key in list(os.environ):
        if key.upper().startswith("WECOM_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def token_path(tmp_path) -> Path:
    return tmp_path / "cache" / "token.json"


@pytest.fixture
def config(token_path) -> WeComConfig:
    """A config with fast retries and an isolated token cache file."""
    return WeComConfig(
        corp_id="ww_test_corp",
        corp_secret="test-secret",
        agent_id=1000002,
        retry=2,
        retry_backoff_seconds=0,
        token_cache_path=token_path,
    )


@pytest.fixture
def token_cache() -> Iterator[TokenCache]:
    """A token cache that always holds T1 and never refreshes by itself."""
    cache = TokenCache(fetch_token=lambda: "T1", ttl=7000, auto_refresh=False)
    yield cache
    cache.shutdown()


@pytest.fixture
def client(config, token_cache) -> Iterator[WeComClient]:
    with WeComClient(config, token_cache=token_cache) as wecom_client:
        yield wecom_client
