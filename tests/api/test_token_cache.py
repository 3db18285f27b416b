"""Tests for the access token cache."""

from __future__ import annotations

import json
import threading
import time
from unittest.mock import Mock

import pytest

from wecom_message.api import TokenCache, WeComAPIError, clamp_refresh_interval
from wecom_message.core import MAX_TOKEN_REFRESH_INTERVAL


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestClampRefreshInterval:
    def test_within_limit_unchanged(self) -> None:
        assert clamp_refresh_interval(3600) == 3600

    def test_above_maximum_is_clamped(self) -> None:
        assert clamp_refresh_interval(100_000) == MAX_TOKEN_REFRESH_INTERVAL

    @pytest.mark.parametrize("seconds", [0, -5])
    def test_non_positive_rejected(self, seconds: float) -> None:
        with pytest.raises(ValueError, match="must be positive"):
            clamp_refresh_interval(seconds)

    def test_cache_uses_clamped_interval(self) -> None:
        cache = TokenCache(Mock(return_value="T1"), ttl=100_000, auto_refresh=False)

        assert cache.refresh_interval == MAX_TOKEN_REFRESH_INTERVAL
        assert cache.token_info.ttl == MAX_TOKEN_REFRESH_INTERVAL


class TestInitialFetch:
    def test_fetches_on_construction(self) -> None:
        fetch = Mock(return_value="T1")

        cache = TokenCache(fetch, ttl=3600, auto_refresh=False)

        assert cache.current() == "T1"
        fetch.assert_called_once_with()

    def test_failed_initial_fetch_leaves_empty_token(self) -> None:
        fetch = Mock(side_effect=RuntimeError("network down"))

        cache = TokenCache(fetch, ttl=3600, auto_refresh=False)

        assert cache.current() == ""
        assert cache.token_info is None

    def test_empty_token_is_not_stored(self) -> None:
        cache = TokenCache(Mock(return_value=""), ttl=3600, auto_refresh=False)

        assert cache.current() == ""


class TestRefresh:
    def test_refresh_replaces_token_after_ttl(self) -> None:
        clock = FakeClock()
        fetch = Mock(side_effect=["T1", "T2"])
        cache = TokenCache(fetch, ttl=3600, auto_refresh=False, clock=clock)
        assert cache.current() == "T1"

        clock.advance(3601)
        assert cache.refresh() is True

        assert cache.current() == "T2"
        assert cache.token_info.obtained_at == clock.now

    def test_failed_refresh_keeps_stale_token(self) -> None:
        fetch = Mock(side_effect=["T1", WeComAPIError(40001, "invalid credential")])
        cache = TokenCache(fetch, ttl=3600, auto_refresh=False)

        assert cache.refresh() is False
        assert cache.current() == "T1"

    def test_background_thread_refreshes(self) -> None:
        tokens = iter(f"T{i}" for i in range(1, 1000))
        cache = TokenCache(lambda: next(tokens), ttl=0.05)
        try:
            assert cache.running
            assert wait_for(lambda: cache.current() not in ("", "T1"))
        finally:
            cache.shutdown()

        assert not cache.running

    def test_reader_not_blocked_by_inflight_refresh(self) -> None:
        fetch_started = threading.Event()
        release_fetch = threading.Event()
        calls = []

        def fetch() -> str:
            calls.append(1)
            if len(calls) == 1:
                return "T1"
            fetch_started.set()
            release_fetch.wait(timeout=5)
            return "T2"

        cache = TokenCache(fetch, ttl=3600, auto_refresh=False)
        refresher = threading.Thread(target=cache.refresh)
        refresher.start()
        try:
            assert fetch_started.wait(timeout=2)
            started = time.monotonic()
            assert cache.current() == "T1"
            assert time.monotonic() - started < 0.5
        finally:
            release_fetch.set()
            refresher.join(timeout=5)

        assert cache.current() == "T2"

    def test_concurrent_reads_never_see_partial_values(self) -> None:
        counter = iter(range(10_000))
        cache = TokenCache(lambda: f"token-{next(counter):05d}", ttl=3600, auto_refresh=False)
        stop = threading.Event()
        observed: set[str] = set()

        def reader() -> None:
            while not stop.is_set():
                observed.add(cache.current())

        readers = [threading.Thread(target=reader) for _ in range(4)]
        for thread in readers:
            thread.start()
        for _ in range(200):
            cache.refresh()
        stop.set()
        for thread in readers:
            thread.join(timeout=5)

        assert observed
        assert all(value.startswith("token-") and len(value) == 11 for value in observed)


class TestPersistence:
    def test_refresh_writes_cache_file(self, token_path) -> None:
        clock = FakeClock()
        TokenCache(
            Mock(return_value="T1"),
            ttl=3600,
            cache_path=token_path,
            auto_refresh=False,
            clock=clock,
        )

        data = json.loads(token_path.read_text(encoding="utf-8"))
        assert data == {"token": "T1", "obtained_at": clock.now, "ttl": 3600}

    def test_valid_persisted_token_avoids_fetch(self, token_path) -> None:
        TokenCache(Mock(return_value="T1"), ttl=3600, cache_path=token_path, auto_refresh=False)

        fetch = Mock(return_value="T2")
        cache = TokenCache(fetch, ttl=3600, cache_path=token_path, auto_refresh=False)

        assert cache.current() == "T1"
        fetch.assert_not_called()

    def test_expired_persisted_token_is_refetched(self, token_path) -> None:
        token_path.parent.mkdir(parents=True)
        token_path.write_text(
            json.dumps({"token": "OLD", "obtained_at": time.time() - 8000, "ttl": 7000}),
            encoding="utf-8",
        )
        fetch = Mock(return_value="T1")

        cache = TokenCache(fetch, ttl=3600, cache_path=token_path, auto_refresh=False)

        assert cache.current() == "T1"
        fetch.assert_called_once_with()

    @pytest.mark.parametrize(
        "content",
        ["not json at all", "[1, 2, 3]", '{"token": "", "obtained_at": 1, "ttl": 1}', '{"token": "X"}'],
    )
    def test_corrupt_cache_file_is_a_miss(self, token_path, content) -> None:
        token_path.parent.mkdir(parents=True)
        token_path.write_text(content, encoding="utf-8")
        fetch = Mock(return_value="T1")

        cache = TokenCache(fetch, ttl=3600, cache_path=token_path, auto_refresh=False)

        assert cache.current() == "T1"
        fetch.assert_called_once_with()

    def test_reused_token_refreshed_when_it_expires(self, token_path) -> None:
        token_path.parent.mkdir(parents=True)
        token_path.write_text(
            json.dumps({"token": "OLD", "obtained_at": time.time() - 1.6, "ttl": 2.0}),
            encoding="utf-8",
        )
        fetch = Mock(return_value="NEW")

        with TokenCache(fetch, ttl=2.0, cache_path=token_path) as cache:
            assert cache.current() == "OLD"
            assert wait_for(lambda: cache.current() == "NEW", timeout=1.5)

        fetch.assert_called_once_with()

    def test_reused_token_near_expiry_not_kept_for_full_interval(self, token_path) -> None:
        clock = FakeClock()
        token_path.parent.mkdir(parents=True)
        token_path.write_text(
            json.dumps({"token": "OLD", "obtained_at": clock.now - 3599.8, "ttl": 3600}),
            encoding="utf-8",
        )
        fetch = Mock(return_value="NEW")

        with TokenCache(fetch, ttl=3600, cache_path=token_path, clock=clock) as cache:
            assert cache.current() == "OLD"
            assert wait_for(lambda: cache.current() == "NEW", timeout=1.5)

    def test_token_of_other_credentials_is_a_miss(self, token_path) -> None:
        TokenCache(
            Mock(return_value="APP_A"),
            ttl=3600,
            cache_path=token_path,
            auto_refresh=False,
            credential_key="ww_corp:aaaa",
        )
        fetch = Mock(return_value="APP_B")

        cache = TokenCache(
            fetch,
            ttl=3600,
            cache_path=token_path,
            auto_refresh=False,
            credential_key="ww_corp:bbbb",
        )

        assert cache.current() == "APP_B"
        fetch.assert_called_once_with()
        assert json.loads(token_path.read_text(encoding="utf-8"))["credential"] == "ww_corp:bbbb"

    def test_token_of_same_credentials_is_reused(self, token_path) -> None:
        TokenCache(
            Mock(return_value="APP_A"),
            ttl=3600,
            cache_path=token_path,
            auto_refresh=False,
            credential_key="ww_corp:aaaa",
        )
        fetch = Mock(return_value="OTHER")

        cache = TokenCache(
            fetch,
            ttl=3600,
            cache_path=token_path,
            auto_refresh=False,
            credential_key="ww_corp:aaaa",
        )

        assert cache.current() == "APP_A"
        fetch.assert_not_called()

    def test_unkeyed_cache_file_is_a_miss_when_key_set(self, token_path) -> None:
        TokenCache(Mock(return_value="T1"), ttl=3600, cache_path=token_path, auto_refresh=False)
        fetch = Mock(return_value="T2")

        cache = TokenCache(
            fetch,
            ttl=3600,
            cache_path=token_path,
            auto_refresh=False,
            credential_key="ww_corp:aaaa",
        )

        assert cache.current() == "T2"

    def test_unwritable_cache_path_does_not_raise(self, tmp_path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory", encoding="utf-8")

        cache = TokenCache(
            Mock(return_value="T1"),
            ttl=3600,
            cache_path=blocker / "token.json",
            auto_refresh=False,
        )

        assert cache.current() == "T1"


class TestShutdown:
    def test_shutdown_is_prompt(self) -> None:
        cache = TokenCache(Mock(return_value="T1"), ttl=7000)
        assert cache.running

        started = time.monotonic()
        cache.shutdown()

        assert time.monotonic() - started < 1.0
        assert not cache.running

    def test_shutdown_twice_is_safe(self) -> None:
        cache = TokenCache(Mock(return_value="T1"), ttl=7000)

        cache.shutdown()
        cache.shutdown()

        assert not cache.running

    def test_shutdown_without_thread(self) -> None:
        cache = TokenCache(Mock(return_value="T1"), ttl=7000, auto_refresh=False)

        cache.shutdown()

        assert cache.current() == "T1"

    def test_context_manager_stops_thread(self) -> None:
        with TokenCache(Mock(return_value="T1"), ttl=7000) as cache:
            assert cache.running

        assert not cache.running
