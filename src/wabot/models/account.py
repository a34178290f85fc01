"""
Identity records — the operating account, chat participants, chats and
group metadata.

``jid`` is always the linked (stable) identifier, ``pn`` the phone-number one.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ChatKind = Literal["private", "group", "unknown"]
Addressing = Literal["pn", "lid", "unknown"]


class Account(BaseModel):
    jid: str = ""
    pn: str = ""
    name: str = ""


class Address(BaseModel):
    """A chat participant."""

    jid: str = ""
    pn: str = ""
    name: str = ""


class Chat(BaseModel):
    model_config = ConfigDict(frozen=True)

    jid: str = ""
    pn: Optional[str] = None
    kind: ChatKind = "unknown"
    addressing: Addressing = "unknown"
    name: str = ""


class GroupParticipant(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    lid: Optional[str] = None
    admin: Optional[str] = None


class GroupMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    subject: str = ""
    owner: Optional[str] = None
    participants: list[GroupParticipant] = Field(default_factory=list)

    @classmethod
    def from_transport(cls, raw: Any) -> Optional["GroupMetadata"]:
        if raw is None:
            return None
        if isinstance(raw, GroupMetadata):
            return raw
        return cls.model_validate(raw)
