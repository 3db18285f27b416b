"""WeCom application message client.

A small client for the WeCom (enterprise WeChat) application message API with:
- Text, image, file, text card, news and markdown messages
- Media upload
- Access token caching with background refresh and on-disk persistence

Example:
    ```python
    from wecom_message import WeComClient, WeComConfig

    config = WeComConfig(corp_id="ww...", corp_secret="...", agent_id=1000002)
    with WeComClient(config) as client:
        client.send_markdown("**Deploy** finished")
    ```
"""

from importlib.metadata import PackageNotFoundError, version

from .api import (
    MediaType,
    MessageSendResult,
    NewsArticle,
    RetryExhaustedError,
    TokenCache,
    WeComAPIError,
    WeComClient,
    WeComError,
)
from .core import LoggingConfig, MessageDefaults, WeComConfig, get_logger, setup_logging

__all__ = [
    "__version__",
    "WeComClient",
    "WeComConfig",
    "MessageDefaults",
    "LoggingConfig",
    "TokenCache",
    "MediaType",
    "NewsArticle",
    "MessageSendResult",
    "WeComError",
    "WeComAPIError",
    "RetryExhaustedError",
    "get_logger",
    "setup_logging",
]

try:  # pragma: no cover - best-effort during development
    __version__ = version("wecom-message")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"
