"""WeCom application message API module.

Components:
- client.py: WeComClient core client and retry loop
- auth.py: Access token retrieval
- message.py: Message sending
- media.py: Media upload
- token_cache.py: Background-refreshed access token cache
- models.py: Data models and errors
"""

from .auth import WeComAuthMixin
from .client import WeComClient, create_client
from .media import WeComMediaMixin
from .message import WeComMessageMixin
from .models import (
    BaseMessage,
    FileMessage,
    ImageMessage,
    MarkdownMessage,
    MediaType,
    MessageSendResult,
    NewsArticle,
    NewsMessage,
    OutgoingMessage,
    ResponseDecodeError,
    RetryExhaustedError,
    TextCardMessage,
    TextMessage,
    TokenInfo,
    WeComAPIError,
    WeComError,
)
from .token_cache import TokenCache, clamp_refresh_interval

__all__ = [
    # Main client
    "WeComClient",
    "create_client",
    "TokenCache",
    "clamp_refresh_interval",
    # Models
    "BaseMessage",
    "TextMessage",
    "ImageMessage",
    "FileMessage",
    "TextCardMessage",
    "NewsArticle",
    "NewsMessage",
    "MarkdownMessage",
    "OutgoingMessage",
    "MediaType",
    "MessageSendResult",
    "TokenInfo",
    # Errors
    "WeComError",
    "WeComAPIError",
    "ResponseDecodeError",
    "RetryExhaustedError",
    # Mixins (for advanced usage)
    "WeComAuthMixin",
    "WeComMessageMixin",
    "WeComMediaMixin",
]
