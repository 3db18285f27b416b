"""Data models for the WeCom application message API.

This module contains the outgoing message variants, result types, the access
token record and the exception hierarchy used by the client.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class MediaType(str, Enum):
    """Media categories accepted by the upload endpoint."""

    IMAGE = "image"
    VOICE = "voice"
    VIDEO = "video"
    FILE = "file"


@dataclass
class TokenInfo:
    """Access token with expiration tracking.

    Attributes:
        token: The access token string.
        obtained_at: Unix timestamp when the token was fetched.
        ttl: Token lifetime in seconds.
    """

    token: str
    obtained_at: float
    ttl: float

    @property
    def expires_at(self) -> float:
        return self.obtained_at + self.ttl

    def is_valid(self, now: float | None = None) -> bool:
        """Check whether the token is still inside its lifetime."""
        if now is None:
            now = time.time()
        return now < self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {"token": self.token, "obtained_at": self.obtained_at, "ttl": self.ttl}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TokenInfo:
        """Build from persisted data.

        Raises:
            ValueError: If required keys are missing or have the wrong type.
        """
        token = data.get("token")
        if not isinstance(token, str) or not token:
            raise ValueError("persisted token is missing")
        try:
            return cls(token=token, obtained_at=float(data["obtained_at"]), ttl=float(data["ttl"]))
        except (KeyError, TypeError) as exc:
            raise ValueError(f"persisted token is malformed: {exc}") from exc


# ==============================================================================
# Outgoing messages
# ==============================================================================


class BaseMessage(BaseModel):
    """Base class for outgoing messages.

    Subclasses declare ``msgtype`` and render their own body in ``content()``.
    """

    msgtype: str

    def content(self) -> dict[str, Any]:
        raise NotImplementedError

    def extra_fields(self) -> dict[str, Any]:
        """Top-level fields added next to the message body."""
        return {}

    def to_payload(self, common_fields: Mapping[str, Any]) -> dict[str, Any]:
        """Build the request body.

        Args:
            common_fields: Default fields (recipients, agent ID, duplicate check)
                rendered with the platform's field names.

        Returns:
            JSON-ready request body.
        """
        payload = dict(common_fields)
        payload["msgtype"] = self.msgtype
        payload[self.msgtype] = self.content()
        payload.update(self.extra_fields())
        return payload


class SafeCapableMessage(BaseMessage):
    """Message kinds that can be marked confidential."""

    safe: bool = False

    def extra_fields(self) -> dict[str, Any]:
        return {"safe": 1} if self.safe else {}


class TextMessage(SafeCapableMessage):
    msgtype: Literal["text"] = "text"
    content_text: str = Field(alias="content")

    model_config = ConfigDict(populate_by_name=True)

    def content(self) -> dict[str, Any]:
        return {"content": self.content_text}


class ImageMessage(SafeCapableMessage):
    msgtype: Literal["image"] = "image"
    media_id: str

    def content(self) -> dict[str, Any]:
        return {"media_id": self.media_id}


class FileMessage(SafeCapableMessage):
    msgtype: Literal["file"] = "file"
    media_id: str

    def content(self) -> dict[str, Any]:
        return {"media_id": self.media_id}


class TextCardMessage(BaseMessage):
    """Text card message. The platform has no confidential mode for cards."""

    msgtype: Literal["textcard"] = "textcard"
    title: str
    description: str
    url: str
    btntxt: str | None = None

    def content(self) -> dict[str, Any]:
        card = {"title": self.title, "description": self.description, "url": self.url}
        if self.btntxt:
            card["btntxt"] = self.btntxt
        return card


class NewsArticle(BaseModel):
    """A single article inside a news message."""

    title: str
    description: str = ""
    url: str = ""
    picurl: str = ""


class NewsMessage(SafeCapableMessage):
    msgtype: Literal["news"] = "news"
    articles: list[NewsArticle] = Field(..., min_length=1, max_length=8)

    def content(self) -> dict[str, Any]:
        return {"articles": [article.model_dump() for article in self.articles]}


class MarkdownMessage(BaseMessage):
    """Markdown message. The platform has no confidential mode for markdown."""

    msgtype: Literal["markdown"] = "markdown"
    content_text: str = Field(alias="content")

    model_config = ConfigDict(populate_by_name=True)

    def content(self) -> dict[str, Any]:
        return {"content": self.content_text}


OutgoingMessage = Annotated[
    Union[
        TextMessage,
        ImageMessage,
        FileMessage,
        TextCardMessage,
        NewsMessage,
        MarkdownMessage,
    ],
    Field(discriminator="msgtype"),
]


# ==============================================================================
# Results
# ==============================================================================


@dataclass
class MessageSendResult:
    """Result of a successful send.

    Attributes:
        msgid: Platform message ID (usable for recall).
        invalid_user: Recipients the platform rejected, '|' separated.
        invalid_party: Departments the platform rejected.
        invalid_tag: Tags the platform rejected.
        raw: Original response body.
    """

    msgid: str = ""
    invalid_user: str = ""
    invalid_party: str = ""
    invalid_tag: str = ""
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def has_invalid_recipients(self) -> bool:
        return bool(self.invalid_user or self.invalid_party or self.invalid_tag)

    @classmethod
    def from_response(cls, data: Mapping[str, Any]) -> MessageSendResult:
        return cls(
            msgid=data.get("msgid", ""),
            invalid_user=data.get("invaliduser", ""),
            invalid_party=data.get("invalidparty", ""),
            invalid_tag=data.get("invalidtag", ""),
            raw=dict(data),
        )


# ==============================================================================
# Errors
# ==============================================================================


class WeComError(Exception):
    """Base class for client errors."""


class ResponseDecodeError(WeComError):
    """Response body is not a JSON object with an ``errcode`` field."""


class WeComAPIError(WeComError):
    """The platform rejected the request.

    Attributes:
        code: WeCom error code.
        msg: Error message as returned by the platform.
    """

    def __init__(self, code: int, msg: str):
        self.code = code
        self.msg = msg
        super().__init__(f"WeCom API error {code}: {msg}")


class RetryExhaustedError(WeComError):
    """Every attempt failed at the transport or decoding level."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"request still failing after {attempts} attempt(s)")
