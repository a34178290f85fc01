"""
Normalized message record — see wabot.normalizer for how it is built.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from wabot.models.account import Address, Chat

ContentType = Literal[
    "conversation",
    "extendedTextMessage",
    "imageMessage",
    "videoMessage",
    "audioMessage",
    "documentMessage",
    "stickerMessage",
    "unknown",
]


class MessageRecord(BaseModel):
    """Immutable, built once per inbound/outbound message.

    ``quoted`` is at most one level deep; ``raw`` is the transport payload the
    record was built from (kept for quoting, editing and deleting).
    """

    model_config = ConfigDict(frozen=True)

    id: str = ""
    timestamp: int = 0
    chat: Chat = Field(default_factory=Chat)
    sender: Address = Field(default_factory=Address)
    from_me: bool = False
    content_type: ContentType = "unknown"
    text: str = ""
    hash: str = ""
    mimetype: str = ""
    size: int = 0
    mentions: list[str] = Field(default_factory=list)
    links: list[str] = Field(default_factory=list)
    quoted: Optional["MessageRecord"] = None
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)
