"""WeCom application message API client.

This module provides the main WeComClient class that combines all API
functionality through mixins and owns the shared retry loop.
"""

from __future__ import annotations

import mimetypes
import time
from pathlib import Path
from typing import Any

import httpx

from ..core.config import MessageDefaults, WeComConfig
from ..core.logger import get_logger
from .auth import WeComAuthMixin
from .media import WeComMediaMixin
from .message import WeComMessageMixin
from .models import ResponseDecodeError, RetryExhaustedError, WeComAPIError
from .token_cache import TokenCache

logger = get_logger("client")

MAX_BACKOFF_SECONDS = 30.0


class WeComClient(
    WeComAuthMixin,
    WeComMessageMixin,
    WeComMediaMixin,
):
    """WeCom application message client.

    Provides:
    - Access token management with background refresh
    - Text, image, file, text card, news and markdown messages
    - Media upload

    Every request is attempted up to ``config.retry + 1`` times. Transport
    errors and undecodable responses are retried; a response carrying a
    non-zero ``errcode`` is raised as WeComAPIError straight away.

    Example:
        ```python
        config = WeComConfig(corp_id="ww...", corp_secret="...", agent_id=1000002)
        with WeComClient(config) as client:
            client.send_text("Deploy finished", safe=True)

            media_id = client.upload_media("report.pdf", MediaType.FILE)
            client.send_file(media_id)
        ```
    """

    def __init__(
        self,
        config: WeComConfig,
        *,
        token_cache: TokenCache | None = None,
        http_client: httpx.Client | None = None,
    ):
        """Initialize the client.

        Args:
            config: Client configuration.
            token_cache: Pre-built token cache. When omitted, one is created
                that fetches tokens through this client.
            http_client: Pre-built httpx client. When omitted, one is created
                from ``config.base_url`` and ``config.timeout`` and closed by
                ``close()``.
        """
        self.config = config
        self.defaults: MessageDefaults = config.defaults.model_copy()

        self._owns_http_client = http_client is None
        self._client = http_client or httpx.Client(
            base_url=config.base_url,
            timeout=config.timeout,
        )

        self._closed = False
        self.token_cache = token_cache or TokenCache(
            fetch_token=self.fetch_access_token,
            ttl=config.token_refresh_interval,
            cache_path=config.token_cache_file,
            credential_key=config.credential_fingerprint,
        )

    def __enter__(self) -> WeComClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()

    def close(self) -> None:
        """Stop the token refresh thread and close the HTTP client."""
        if self._closed:
            return
        self._closed = True
        self.token_cache.shutdown()
        if self._owns_http_client:
            self._client.close()
        logger.debug("WeComClient closed")

    def set_defaults(self, defaults: MessageDefaults) -> None:
        """Replace the default message fields.

        Callers must not race this against concurrent sends.
        """
        if defaults.agent_id is None:
            defaults = defaults.model_copy(update={"agent_id": self.config.agent_id})
        self.defaults = defaults

    def update_defaults(self, **changes: Any) -> MessageDefaults:
        """Update selected default message fields.

        Example:
            ```python
            client.update_defaults(to_user="zhangsan|lisi", to_party="")
            ```
        """
        self.set_defaults(MessageDefaults.model_validate({**self.defaults.model_dump(), **changes}))
        return self.defaults

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
        upload: Path | None = None,
        authenticated: bool = True,
        required: str | None = None,
    ) -> dict[str, Any]:
        """Perform an API call with bounded retry.

        Args:
            method: HTTP method.
            path: Path relative to the base URL.
            params: Query parameters.
            json_body: JSON request body.
            upload: File sent as the multipart ``media`` field.
            authenticated: Add the cached access token as ``access_token``.
            required: Field a successful response must carry as a non-empty
                string. A success without it is retried like an undecodable body.

        Returns:
            Decoded response body with ``errcode == 0``.

        Raises:
            WeComAPIError: The platform rejected the request.
            RetryExhaustedError: Every attempt failed at transport or decoding level.
        """
        attempts = self.config.retry + 1
        delay = self.config.retry_backoff_seconds

        for attempt in range(1, attempts + 1):
            query = dict(params or {})
            if authenticated:
                query["access_token"] = self.token_cache.current()

            try:
                response = self._send(method, path, query, json_body, upload)
                response.raise_for_status()
                data = self._decode(response, required)
            except (httpx.HTTPError, ResponseDecodeError) as exc:
                if attempt >= attempts:
                    logger.error("Request to %s failed after %d attempt(s): %s", path, attempt, exc)
                    break
                logger.warning(
                    "Attempt %d/%d for %s failed: %s. Retrying in %.2fs",
                    attempt,
                    attempts,
                    path,
                    exc,
                    delay,
                )
                if delay > 0:
                    time.sleep(delay)
                delay = min(delay * 2, MAX_BACKOFF_SECONDS)
                continue

            errcode = data["errcode"]
            if errcode != 0:
                errmsg = data.get("errmsg", "Unknown error")
                logger.error("WeCom rejected %s: errcode=%s, errmsg=%s", path, errcode, errmsg)
                raise WeComAPIError(code=errcode, msg=errmsg)

            return data

        raise RetryExhaustedError(attempts)

    def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any],
        json_body: dict[str, Any] | None,
        upload: Path | None,
    ) -> httpx.Response:
        if upload is None:
            return self._client.request(method, path, params=params, json=json_body)

        content_type = mimetypes.guess_type(upload.name)[0] or "application/octet-stream"
        with open(upload, "rb") as handle:
            return self._client.request(
                method,
                path,
                params=params,
                files={"media": (upload.name, handle, content_type)},
            )

    @staticmethod
    def _decode(response: httpx.Response, required: str | None = None) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise ResponseDecodeError(f"Response body is not valid JSON: {exc}") from exc
        if not isinstance(data, dict) or not isinstance(data.get("errcode"), int):
            raise ResponseDecodeError("Response body has no integer 'errcode' field")
        if required and data["errcode"] == 0:
            value = data.get(required)
            if not isinstance(value, str) or not value:
                raise ResponseDecodeError(f"Response body has no {required!r} field")
        return data


def create_client(config: WeComConfig | None = None) -> WeComClient:
    """Create a client from the given config or from WECOM_* environment variables."""
    return WeComClient(config or WeComConfig.from_env())
