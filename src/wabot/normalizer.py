"""
Message normalizer — raw transport message -> MessageRecord.

Resolution order:
1. chat and sender from the message key (linked ids preferred over phone
   numbers; self-sent messages are attributed to the account),
2. content, by recursive descent over an explicit content union (containers
   recurse, leaves terminate),
3. context info at the leaf (mentions, quoted message, ad-reply link),
4. a final scan of the resolved text for mentions and links.
"""

import base64
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

from wabot.cache import ContactCache, GroupCache
from wabot.jid import LID_SERVER, PN_SERVER, is_group, is_lid, is_pn
from wabot.models.account import Account, Address, Chat
from wabot.models.message import MessageRecord
from wabot.text import dedupe, is_link, parse_links, parse_mentions

MEDIA_TYPES = ("imageMessage", "videoMessage", "audioMessage", "documentMessage", "stickerMessage")
CONTAINER_TYPES = (
    "viewOnceMessage",
    "viewOnceMessageV2",
    "viewOnceMessageV2Extension",
    "documentWithCaptionMessage",
    "ephemeralMessage",
)
# Keys that ride along with the real content and never describe it.
SKIPPED_KEYS = ("senderKeyDistributionMessage", "messageContextInfo")


@dataclass(frozen=True)
class TextContent:
    type: str
    text: str
    context: Mapping[str, Any]


@dataclass(frozen=True)
class MediaContent:
    type: str
    hash: str
    mimetype: str
    size: int
    caption: str
    context: Mapping[str, Any]


@dataclass(frozen=True)
class ContainerContent:
    type: str
    inner: Mapping[str, Any]


@dataclass(frozen=True)
class UnknownContent:
    type: str
    context: Mapping[str, Any]


Content = Union[TextContent, MediaContent, ContainerContent, UnknownContent]


def to_int(value: Any) -> int:
    """Integers as the transport may send them: int, numeric str or ``{low, high}``."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value) if value.strip().lstrip("-").isdigit() else 0
    if isinstance(value, Mapping):
        return (to_int(value.get("high")) << 32) | (to_int(value.get("low")) & 0xFFFFFFFF)
    return 0


def to_hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, list):
        return bytes(value).hex()
    if isinstance(value, str) and value:
        try:
            return base64.b64decode(value, validate=True).hex()
        except ValueError:
            return ""
    return ""


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def classify_content(message: Mapping[str, Any]) -> Optional[Content]:
    type_ = next((k for k in message if k not in SKIPPED_KEYS), None)
    if type_ is None or not message[type_]:
        return None
    value = message[type_]
    if type_ in CONTAINER_TYPES:
        return ContainerContent(type_, _mapping(_mapping(value).get("message")))
    if type_ == "conversation":
        return TextContent(type_, str(value).strip(), {})
    if type_ == "extendedTextMessage":
        body = _mapping(value)
        return TextContent(type_, str(body.get("text") or "").strip(), _mapping(body.get("contextInfo")))
    body = _mapping(value)
    if type_ in MEDIA_TYPES:
        return MediaContent(
            type=type_,
            hash=to_hex(body.get("fileSha256")),
            mimetype=str(body.get("mimetype") or ""),
            size=to_int(body.get("fileLength")),
            caption=str(body.get("caption") or "").strip(),
            context=_mapping(body.get("contextInfo")),
        )
    return UnknownContent(type_, _mapping(body.get("contextInfo")))


@dataclass
class _Parsed:
    content_type: str = "unknown"
    text: str = ""
    hash: str = ""
    mimetype: str = ""
    size: int = 0
    context: Mapping[str, Any] = field(default_factory=dict)


def _resolve(message: Mapping[str, Any]) -> _Parsed:
    content = classify_content(message)
    if content is None:
        return _Parsed()
    if isinstance(content, ContainerContent):
        return _resolve(content.inner)
    if isinstance(content, TextContent):
        return _Parsed(content.type, content.text, "", "text/plain", len(content.text), content.context)
    if isinstance(content, MediaContent):
        return _Parsed(content.type, content.caption, content.hash, content.mimetype, content.size, content.context)
    return _Parsed(context=content.context)


def _resolve_chat(key: Mapping[str, Any], contacts: ContactCache, groups: GroupCache) -> Chat:
    remote = key.get("remoteJid")
    if not remote:
        return Chat()
    if is_group(remote):
        metadata = groups.get(remote)
        return Chat(
            jid=remote,
            kind="group",
            addressing="lid" if key.get("addressingMode") == "lid" else "pn",
            name=metadata.subject if metadata else "",
        )
    ids = (remote, key.get("remoteJidAlt"))
    jid = next((v for v in ids if is_lid(v)), None)
    pn = next((v for v in ids if is_pn(v)), None)
    if not (jid or pn):
        return Chat()
    contact = contacts.find(jid, pn)
    return Chat(jid=jid or "", pn=pn, kind="private", addressing="pn", name=contact.name if contact else "")


def _resolve_sender(raw: Mapping[str, Any], key: Mapping[str, Any], chat: Chat, account: Account) -> Address:
    name = raw.get("verifiedBizName") or raw.get("pushName") or ""
    from_me = bool(key.get("fromMe"))
    if key.get("participant"):
        ids = (key.get("participant"), key.get("participantAlt"))
        jid = account.jid if from_me else next((v for v in ids if is_lid(v)), None)
        pn = account.pn if from_me else next((v for v in ids if is_pn(v)), None)
        if jid or pn:
            return Address(jid=jid or "", pn=pn or "", name=name)
    elif chat.kind == "private":
        jid = account.jid if from_me else chat.jid
        pn = account.pn if from_me else chat.pn
        if is_lid(jid):
            return Address(jid=jid, pn=pn or "", name=name)
    return Address()


def _quoted_message(context: Mapping[str, Any], account: Account) -> dict[str, Any]:
    participant = context.get("participant")
    return {
        "key": {
            "remoteJid": context.get("remoteJid"),
            "fromMe": bool(participant) and participant in (account.jid, account.pn),
            "id": context.get("stanzaId"),
            "participant": participant,
            "addressingMode": "lid" if is_lid(participant) else "pn",
        },
        "message": context.get("quotedMessage"),
    }


def _build(
    raw: Mapping[str, Any],
    account: Account,
    contacts: ContactCache,
    groups: GroupCache,
    with_quote: bool,
) -> MessageRecord:
    key = _mapping(raw.get("key"))
    chat = _resolve_chat(key, contacts, groups)
    sender = _resolve_sender(raw, key, chat, account)
    parsed = _resolve(_mapping(raw.get("message")))
    context = parsed.context

    mentions = [m for m in context.get("mentionedJid") or [] if isinstance(m, str)]
    links: list[str] = []
    quoted = None
    if with_quote and context.get("quotedMessage"):
        quoted = _build(_quoted_message(context, account), account, contacts, groups, with_quote=False)
        if quoted.chat.kind == "unknown":
            quoted = quoted.model_copy(update={"chat": chat})
    source_url = _mapping(context.get("externalAdReply")).get("sourceUrl")
    if is_link(source_url):
        links.append(source_url)

    if parsed.text:
        server = LID_SERVER if chat.addressing == "lid" else PN_SERVER
        mentions.extend(parse_mentions(parsed.text, server))
        links.extend(parse_links(parsed.text))

    return MessageRecord(
        id=str(key.get("id") or ""),
        timestamp=to_int(raw.get("messageTimestamp")),
        chat=chat,
        sender=sender,
        from_me=bool(key.get("fromMe")),
        content_type=parsed.content_type,
        text=parsed.text,
        hash=parsed.hash,
        mimetype=parsed.mimetype,
        size=parsed.size,
        mentions=dedupe(mentions),
        links=dedupe(links),
        quoted=quoted,
        raw=dict(raw),
    )


def normalize_message(
    raw: Mapping[str, Any],
    account: Account,
    contacts: Optional[ContactCache] = None,
    groups: Optional[GroupCache] = None,
) -> MessageRecord:
    """Build the record for one raw message. Quote chains are cut at one level."""
    if contacts is None:
        contacts = ContactCache()
    if groups is None:
        groups = GroupCache()
    return _build(raw, account, contacts, groups, with_quote=True)
