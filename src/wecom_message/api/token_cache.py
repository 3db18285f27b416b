"""Access token cache with background refresh and optional persistence.

The cache holds a single access token. A daemon thread refreshes it every
``refresh_interval`` seconds without looking at the remaining lifetime, so the
interval must stay below the platform-side expiry. A successful refresh is
written to a JSON file so that a restarted process can reuse a token that is
still valid instead of fetching a new one. The file records which credentials
produced the token, and a reused token is refreshed as soon as it expires.
"""

from __future__ import annotations

import json
import os
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from ..core.config import MAX_TOKEN_REFRESH_INTERVAL
from ..core.logger import get_logger
from .models import TokenInfo

logger = get_logger("token_cache")

SHUTDOWN_JOIN_TIMEOUT = 5.0


def clamp_refresh_interval(seconds: float) -> float:
    """Cap a refresh interval at MAX_TOKEN_REFRESH_INTERVAL.

    Raises:
        ValueError: If the interval is not positive.
    """
    if seconds <= 0:
        raise ValueError(f"Token refresh interval must be positive, got {seconds}")
    return min(seconds, MAX_TOKEN_REFRESH_INTERVAL)


class TokenCache:
    """Thread-safe access token cache.

    Example:
        ```python
        cache = TokenCache(fetch_token=api.fetch_access_token, ttl=7000)
        token = cache.current()
        ...
        cache.shutdown()
        ```
    """

    def __init__(
        self,
        fetch_token: Callable[[], str],
        ttl: float,
        cache_path: str | Path | None = None,
        *,
        auto_refresh: bool = True,
        credential_key: str | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the cache and obtain a first token.

        Args:
            fetch_token: Callable returning a fresh access token. Any exception
                it raises is treated as a failed refresh.
            ttl: Token lifetime and refresh interval in seconds. Clamped to
                MAX_TOKEN_REFRESH_INTERVAL.
            cache_path: JSON file used to persist the token. None disables
                persistence.
            auto_refresh: Start the background refresh thread.
            credential_key: Identifies the credentials behind the token. A
                persisted token saved under a different key is not reused.
            clock: Time source, overridable in tests.
        """
        self._fetch_token = fetch_token
        self.refresh_interval = clamp_refresh_interval(ttl)
        self.cache_path = Path(cache_path) if cache_path is not None else None
        self.credential_key = credential_key
        self._clock = clock

        self._token: TokenInfo | None = None
        self._lock = threading.Lock()
        self._refresh_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._first_wait = self.refresh_interval

        persisted = self._load()
        if persisted is not None and persisted.is_valid(self._clock()):
            logger.debug("Reusing persisted access token from %s", self.cache_path)
            self._token = persisted
            self._first_wait = min(
                max(0.0, persisted.expires_at - self._clock()), self.refresh_interval
            )
        else:
            self.refresh()

        if auto_refresh:
            self.start()

    def __enter__(self) -> TokenCache:
        return self

    def __exit__(self, *args: Any) -> None:
        self.shutdown()

    @property
    def token_info(self) -> TokenInfo | None:
        """The current token record, if any."""
        with self._lock:
            return self._token

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def current(self) -> str:
        """Return the last known token, or an empty string if none was obtained."""
        with self._lock:
            token = self._token
        return token.token if token is not None else ""

    def refresh(self) -> bool:
        """Fetch a new token and replace the cached one.

        Failures are logged and leave the previous token in place.

        Returns:
            True if the token was replaced.
        """
        with self._refresh_lock:
            try:
                value = self._fetch_token()
            except Exception as exc:
                logger.warning("Access token refresh failed, keeping previous token: %s", exc)
                return False

            if not value:
                logger.warning("Access token refresh returned an empty token")
                return False

            token = TokenInfo(token=value, obtained_at=self._clock(), ttl=self.refresh_interval)
            with self._lock:
                self._token = token

            logger.info("Access token refreshed (valid for %d seconds)", self.refresh_interval)
            self._save(token)
            return True

    def start(self) -> None:
        """Start the background refresh thread."""
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._refresh_loop,
            name="wecom-token-refresh",
            daemon=True,
        )
        self._thread.start()
        logger.debug("Token refresh thread started (interval=%ss)", self.refresh_interval)

    def shutdown(self) -> None:
        """Stop the background refresh thread.

        Safe to call more than once. An in-flight fetch is not interrupted; the
        join is bounded so shutdown never blocks indefinitely.
        """
        if self._stop_event.is_set() and not self.running:
            return
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=SHUTDOWN_JOIN_TIMEOUT)
            if thread.is_alive():
                logger.warning("Token refresh thread did not stop within %ss", SHUTDOWN_JOIN_TIMEOUT)
        self._thread = None
        logger.debug("Token refresh thread stopped")

    def _refresh_loop(self) -> None:
        # A reused token is refreshed when it expires, not a full interval later.
        wait = self._first_wait
        while not self._stop_event.wait(wait):
            self.refresh()
            wait = self.refresh_interval

    def _load(self) -> TokenInfo | None:
        """Read the persisted token. Any problem counts as a cache miss."""
        if self.cache_path is None or not self.cache_path.exists():
            return None
        try:
            with open(self.cache_path, encoding="utf-8") as handle:
                data = json.load(handle)
            if not isinstance(data, dict):
                raise ValueError("cache file does not contain an object")
            token = TokenInfo.from_dict(data)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable token cache %s: %s", self.cache_path, exc)
            return None

        if self.credential_key is not None and data.get("credential") != self.credential_key:
            logger.info("Token cache %s belongs to other credentials, ignoring it", self.cache_path)
            return None
        return token

    def _save(self, token: TokenInfo) -> None:
        if self.cache_path is None:
            return
        data = token.to_dict()
        if self.credential_key is not None:
            data["credential"] = self.credential_key
        tmp_path = self.cache_path.with_name(f"{self.cache_path.name}.tmp")
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as handle:
                json.dump(data, handle)
            os.replace(tmp_path, self.cache_path)
        except OSError as exc:
            logger.warning("Failed to persist access token to %s: %s", self.cache_path, exc)
