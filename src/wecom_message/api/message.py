"""Message API operations for WeCom.

This module provides one send operation per message kind:
- Text
- Image
- File
- Text card
- News (article list)
- Markdown
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from ..core.logger import get_logger
from .models import (
    BaseMessage,
    FileMessage,
    ImageMessage,
    MarkdownMessage,
    MessageSendResult,
    NewsArticle,
    NewsMessage,
    TextCardMessage,
    TextMessage,
)

if TYPE_CHECKING:
    from ..core.config import MessageDefaults

logger = get_logger("message")


class WeComMessageMixin:
    """Mixin providing message sending for WeCom.

    This mixin should be used with a class that has:
    - self.defaults: MessageDefaults
    - self._request(...) -> dict
    """

    SEND_MESSAGE_URL = "/cgi-bin/message/send"

    defaults: MessageDefaults

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Perform an API call with retry. To be implemented by main class."""
        raise NotImplementedError

    def build_payload(self, message: BaseMessage) -> dict[str, Any]:
        """Merge the default fields with the message body."""
        return message.to_payload(self.defaults.to_fields())

    def send_message(self, message: BaseMessage) -> MessageSendResult:
        """Send any outgoing message.

        Args:
            message: One of the message models from ``wecom_message.api.models``.

        Returns:
            MessageSendResult with the platform message ID.

        Raises:
            WeComAPIError: If the platform rejects the message.
            RetryExhaustedError: If the API stays unreachable.
        """
        payload = self.build_payload(message)
        data = self._request("POST", self.SEND_MESSAGE_URL, json_body=payload)

        result = MessageSendResult.from_response(data)
        if result.has_invalid_recipients:
            logger.warning(
                "Message %s delivered with invalid recipients: user=%s party=%s tag=%s",
                result.msgid,
                result.invalid_user,
                result.invalid_party,
                result.invalid_tag,
            )
        logger.info("%s message sent: %s", message.msgtype, result.msgid)
        return result

    def send_text(self, content: str, safe: bool = False) -> MessageSendResult:
        """Send a text message.

        Example:
            ```python
            client.send_text("Build #42 passed")
            ```
        """
        return self.send_message(TextMessage(content=content, safe=safe))

    def send_image(self, media_id: str, safe: bool = False) -> MessageSendResult:
        """Send an image previously uploaded with ``upload_media``."""
        return self.send_message(ImageMessage(media_id=media_id, safe=safe))

    def send_file(self, media_id: str, safe: bool = False) -> MessageSendResult:
        """Send a file previously uploaded with ``upload_media``."""
        return self.send_message(FileMessage(media_id=media_id, safe=safe))

    def send_textcard(
        self,
        title: str,
        description: str,
        url: str,
        btntxt: str | None = None,
        safe: bool = False,
    ) -> MessageSendResult:
        """Send a text card message.

        Args:
            title: Card title.
            description: Card body. Supports the platform's limited HTML tags.
            url: Link opened when the card is clicked.
            btntxt: Button text (platform default is "详情").
            safe: Ignored. Text cards cannot be confidential.
        """
        return self.send_message(
            TextCardMessage(title=title, description=description, url=url, btntxt=btntxt)
        )

    def send_news(
        self,
        articles: Iterable[NewsArticle | Mapping[str, Any]],
        safe: bool = False,
    ) -> MessageSendResult:
        """Send a news message with one to eight articles.

        Example:
            ```python
            client.send_news([
                NewsArticle(title="Release notes", url="https://example.com/notes"),
            ])
            ```
        """
        return self.send_message(
            NewsMessage(
                articles=[NewsArticle.model_validate(article) for article in articles],
                safe=safe,
            )
        )

    def send_markdown(self, content: str, safe: bool = False) -> MessageSendResult:
        """Send a markdown message. ``safe`` is ignored for markdown."""
        return self.send_message(MarkdownMessage(content=content))
