"""
Event names and event payloads.

Transport events are plain string constants (the transport's own names);
bot events are a closed set of tagged variants delivered through
wabot.events.EventBus.
"""

from dataclasses import dataclass
from enum import Enum
from http import HTTPStatus
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from wabot.models.account import Account

INTENTIONAL_DISCONNECT = "Intentional disconnection."
INTENTIONAL_STATUS = 204


class TransportEvent:
    """Events the connection manager subscribes to on a transport session."""
    CREDS_UPDATE = "creds.update"
    CONNECTION_UPDATE = "connection.update"
    MESSAGES_UPSERT = "messages.upsert"
    CONTACTS_UPDATE = "contacts.update"
    GROUPS_UPDATE = "groups.update"

    ALL = (CREDS_UPDATE, CONNECTION_UPDATE, MESSAGES_UPSERT, CONTACTS_UPDATE, GROUPS_UPDATE)


class ConnectionState(str, Enum):
    CLOSED = "closed"
    OPENING = "opening"
    OPEN = "open"
    RECONNECTING = "reconnecting"


class LoginMethod(str, Enum):
    QR = "qr"
    OTP = "otp"


class CloseReason(BaseModel):
    """Normalized ``(error, status_code, message)`` triple of a disconnect."""

    model_config = ConfigDict(frozen=True)

    error: str = "Unknown"
    status_code: Optional[int] = None
    message: str = ""

    @property
    def intentional(self) -> bool:
        return self.status_code == INTENTIONAL_STATUS or self.message == INTENTIONAL_DISCONNECT

    @classmethod
    def from_error(cls, error: Optional[BaseException]) -> "CloseReason":
        if error is None:
            return cls()
        status = getattr(error, "status_code", None)
        if not isinstance(status, int):
            status = 500
        try:
            phrase = HTTPStatus(status).phrase
        except ValueError:
            phrase = "Unknown"
        return cls(error=phrase, status_code=status, message=str(error))

    def __str__(self) -> str:
        return f"{self.error} {self.status_code}: {self.message}"


class ConnectionUpdate(BaseModel):
    """Payload of ``connection.update``."""

    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True, extra="ignore")

    connection: Optional[str] = None
    qr: Optional[str] = None
    error: Optional[BaseException] = Field(default=None, alias="lastDisconnect")

    @classmethod
    def from_transport(cls, raw: Any) -> "ConnectionUpdate":
        if isinstance(raw, ConnectionUpdate):
            return raw
        raw = dict(raw or {})
        last = raw.pop("lastDisconnect", None) or raw.pop("last_disconnect", None)
        if isinstance(last, dict):
            last = last.get("error")
        if last is not None and not isinstance(last, BaseException):
            last = None
        return cls(connection=raw.get("connection"), qr=raw.get("qr"), lastDisconnect=last)


@dataclass(frozen=True)
class Opened:
    account: Account


@dataclass(frozen=True)
class Closed:
    reason: CloseReason


@dataclass(frozen=True)
class QrReady:
    qr: str


@dataclass(frozen=True)
class OtpReady:
    code: str


@dataclass(frozen=True)
class Failed:
    error: Exception


BotEvent = Union[Opened, Closed, QrReady, OtpReady, Failed]
