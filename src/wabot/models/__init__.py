from wabot.models.account import Account, Address, Chat, GroupMetadata, GroupParticipant
from wabot.models.events import (
    BotEvent,
    Closed,
    CloseReason,
    ConnectionState,
    ConnectionUpdate,
    Failed,
    LoginMethod,
    Opened,
    OtpReady,
    QrReady,
    TransportEvent,
)
from wabot.models.message import MessageRecord

__all__ = [
    "Account",
    "Address",
    "Chat",
    "GroupMetadata",
    "GroupParticipant",
    "MessageRecord",
    "BotEvent",
    "Closed",
    "CloseReason",
    "ConnectionState",
    "ConnectionUpdate",
    "Failed",
    "LoginMethod",
    "Opened",
    "OtpReady",
    "QrReady",
    "TransportEvent",
]
