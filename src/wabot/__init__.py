"""
wabot — bot framework for session-oriented messaging transports.

Encrypted credential persistence, a reconnecting connection lifecycle and a
command-aware middleware pipeline over normalized messages.
"""

__version__ = "0.1.0"

from wabot.auth import CredentialStore, LocalBackend
from wabot.bot import Bot
from wabot.config import BotConfig
from wabot.context import Context
from wabot.errors import (
    DecryptionFailed,
    InvalidIdentity,
    MiddlewareReentry,
    NotInitialized,
    RestartRequired,
    TransportError,
    TransportNotOpen,
    WABotError,
)
from wabot.message_builder import MessageBuilder
from wabot.models.events import Closed, ConnectionState, Failed, LoginMethod, Opened, OtpReady, QrReady

__all__ = [
    "Bot",
    "BotConfig",
    "Context",
    "CredentialStore",
    "LocalBackend",
    "MessageBuilder",
    "LoginMethod",
    "ConnectionState",
    "Opened",
    "Closed",
    "QrReady",
    "OtpReady",
    "Failed",
    "WABotError",
    "NotInitialized",
    "DecryptionFailed",
    "TransportNotOpen",
    "InvalidIdentity",
    "MiddlewareReentry",
    "TransportError",
    "RestartRequired",
]
