"""
Execution context — one per inbound message.

Wraps the normalized MessageRecord with the parsed command and the reply
helpers middlewares use to answer.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import TYPE_CHECKING, Any, NamedTuple, Optional, Union

from wabot.errors import InvalidIdentity, TransportError, WABotError
from wabot.models.account import Address, Chat
from wabot.models.message import MessageRecord

if TYPE_CHECKING:
    from wabot.bot import Bot

Media = Union[bytes, str]


class ParsedCommand(NamedTuple):
    prefix: str
    name: str
    args: list[str]


@lru_cache(maxsize=32)
def command_pattern(prefix: str) -> re.Pattern[str]:
    return re.compile(rf"^\s*([{re.escape(prefix)}])\s*([a-zA-Z0-9_$>?-]+)(?:\s+(.+))?", re.IGNORECASE)


def parse_command(text: str, prefix: str) -> ParsedCommand:
    match = command_pattern(prefix).match(text or "")
    if not match:
        return ParsedCommand("", "", [])
    return ParsedCommand(match.group(1), match.group(2).lower(), (match.group(3) or "").split())


class Context:
    def __init__(self, bot: Bot, message: MessageRecord):
        self.bot = bot
        self.message = message
        self.prefix_used, self.command_name, self.args = parse_command(message.text, bot.config.prefix)

    def __repr__(self) -> str:
        return f"Context(id={self.id!r}, chat={self.chat.jid!r}, command={self.command_name!r})"

    @property
    def id(self) -> str:
        return self.message.id

    @property
    def chat(self) -> Chat:
        return self.message.chat

    @property
    def sender(self) -> Address:
        return self.message.sender

    @property
    def text(self) -> str:
        return self.message.text

    @property
    def quoted(self) -> Optional[MessageRecord]:
        return self.message.quoted

    def _destination(self) -> str:
        jid = self.chat.jid or self.chat.pn
        if not jid:
            raise InvalidIdentity("Unknown chat.", details={"message_id": self.id})
        return jid

    def _options(self, quote: bool = True) -> dict[str, Any]:
        options: dict[str, Any] = {"addressing": "lid" if self.chat.addressing == "lid" else "pn"}
        if quote:
            options["quoted"] = self.message.raw
        return options

    async def _send(self, content: dict[str, Any], quote: bool = True) -> Context:
        ctx = await self.bot.send_message(self._destination(), content, self._options(quote))
        if ctx is None:
            raise TransportError("The message could not be sent.")
        return ctx

    @staticmethod
    def _media(value: Media, kind: str) -> Any:
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        if isinstance(value, str) and value.startswith(("http://", "https://")):
            return {"url": value}
        raise TypeError(f"{kind} type not supported.")

    async def reply(self, text: str, mentions: Optional[list[str]] = None) -> Context:
        content: dict[str, Any] = {"text": str(text)}
        if mentions:
            content["mentions"] = mentions
        return await self._send(content)

    async def reply_with_image(
        self,
        image: Media,
        caption: Optional[str] = None,
        mimetype: str = "image/jpeg",
        view_once: bool = False,
        mentions: Optional[list[str]] = None,
    ) -> Context:
        content: dict[str, Any] = {"image": self._media(image, "Image"), "mimetype": mimetype, "viewOnce": view_once}
        if caption:
            content["caption"] = caption
        if mentions:
            content["mentions"] = mentions
        return await self._send(content)

    async def reply_with_video(
        self,
        video: Media,
        caption: Optional[str] = None,
        mimetype: str = "video/mp4",
        view_once: bool = False,
        gif_playback: bool = False,
        mentions: Optional[list[str]] = None,
    ) -> Context:
        content: dict[str, Any] = {
            "video": self._media(video, "Video"),
            "mimetype": mimetype,
            "viewOnce": view_once,
            "gifPlayback": gif_playback,
        }
        if caption:
            content["caption"] = caption
        if mentions:
            content["mentions"] = mentions
        return await self._send(content)

    async def reply_with_audio(self, audio: Media, mimetype: str = "audio/mpeg") -> Context:
        return await self._send({"audio": self._media(audio, "Audio"), "mimetype": mimetype})

    async def reply_with_sticker(self, sticker: bytes) -> Context:
        if not isinstance(sticker, (bytes, bytearray)):
            raise TypeError("Sticker type not supported.")
        return await self._send({"sticker": bytes(sticker), "mimetype": "image/webp"})

    async def delete(self) -> None:
        await self.bot.send_message(self._destination(), {"delete": self.message.raw.get("key")}, {})

    async def edit(self, text: str) -> Context:
        if not self.message.from_me:
            raise WABotError(
                "not_editable",
                f"The '{self.id}' message cannot be edited because it was not sent by the client.",
            )
        return await self._send({"edit": self.message.raw.get("key"), "text": str(text)}, quote=False)

    async def download(self) -> bytes:
        return await self.bot.download_media(self.message)
