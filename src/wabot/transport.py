"""
Transport collaborator contract.

wabot does not speak the wire protocol itself. A transport adapter implements
``Transport.connect`` and hands back a ``Session``; the session delivers
``wabot.models.events.TransportEvent`` events to registered listeners and
performs the network operations below.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from wabot.auth.store import AuthState
from wabot.models.account import GroupMetadata

Listener = Callable[[Any], Awaitable[None]]


@dataclass
class SocketConfig:
    auth: AuthState
    browser: tuple[str, str, str]
    logger: logging.Logger
    qr_timeout_ms: int
    connect_timeout_ms: int
    mark_online_on_connect: bool
    sync_full_history: bool
    generate_high_quality_link_preview: bool
    link_preview_thumbnail_width: int
    should_ignore_jid: Callable[[str], bool]
    cached_group_metadata: Callable[[str], Awaitable[Optional[GroupMetadata]]]


class SessionUser(BaseModel):
    """Identity the server reports for the logged-in device."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = ""
    lid: str = ""
    name: Optional[str] = None
    verified_name: Optional[str] = Field(default=None, alias="verifiedName")


class Session(Protocol):
    @property
    def user(self) -> Optional[Mapping[str, Any]]: ...

    @property
    def is_open(self) -> bool: ...

    def on(self, event: str, listener: Listener) -> None: ...

    def off(self, event: str, listener: Listener) -> None: ...

    async def send_message(
        self, jid: str, content: Mapping[str, Any], options: Mapping[str, Any],
    ) -> Optional[Mapping[str, Any]]:
        """Send and return the sent raw message. Raises TransportError on failure."""
        ...

    async def request_pairing_code(self, phone_number: str) -> Optional[str]: ...

    async def logout(self, reason: Optional[str] = None) -> None: ...

    def end(self, error: Optional[BaseException] = None) -> None:
        """Close the connection; the session reports it as a ``close`` update."""
        ...

    async def group_metadata(self, jid: str) -> Mapping[str, Any]: ...

    async def profile_picture_url(self, jid: str, kind: str = "image") -> Optional[str]: ...

    async def download_media(self, message: Mapping[str, Any]) -> bytes: ...


class Transport(Protocol):
    async def connect(self, config: SocketConfig) -> Session: ...
