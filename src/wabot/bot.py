"""
Bot — the public facade.

Composes the credential store, connection manager, caches, event bus and
dispatcher for one account, and owns the outbound send path.
"""

import asyncio
import logging
import time
import uuid as uuid_lib
from typing import Any, AsyncGenerator, Callable, Mapping, Optional, Union

from wabot.auth.store import CredentialStore, validate_uuid
from wabot.cache import ContactCache, GroupCache
from wabot.config import BotConfig
from wabot.connection import ConnectionManager, Sleep
from wabot.context import Context
from wabot.dispatch import Dispatcher, Middleware
from wabot.errors import InvalidIdentity, TransportNotOpen
from wabot.events import EventBus, EventHandler
from wabot.jid import LID_SERVER, PN_SERVER, is_group, is_lid, is_pn
from wabot.models.account import Account, Address, GroupMetadata
from wabot.models.events import BotEvent, ConnectionState, Failed, LoginMethod
from wabot.models.message import MessageRecord
from wabot.normalizer import normalize_message
from wabot.text import dedupe
from wabot.text import parse_links as _parse_links
from wabot.text import parse_mentions as _parse_mentions
from wabot.transport import Session, Transport


class Bot:
    """One automated account.

    Usage::

        bot = Bot(uuid, CredentialStore(uuid, LocalBackend("./sessions", uuid)), transport)
        bot.command("ping", ping_handler)
        bot.on(QrReady, show_qr)
        await bot.login(LoginMethod.QR)
    """

    def __init__(
        self,
        uuid: Union[str, uuid_lib.UUID],
        store: CredentialStore,
        transport: Transport,
        account: Optional[Account] = None,
        config: Optional[BotConfig] = None,
        logger: Optional[logging.Logger] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.uuid = validate_uuid(uuid)
        if store.uuid != self.uuid:
            raise InvalidIdentity(
                "The credential store belongs to a different identity.",
                details={"uuid": self.uuid, "store_uuid": store.uuid},
            )
        self.config = config or BotConfig()
        self.logger = logger or logging.getLogger(f"wabot.bot.{self.uuid}")
        self.ping = 0.0
        self.contacts = ContactCache()
        self.groups = GroupCache()
        self._bus = EventBus()
        self._dispatcher = Dispatcher()
        self._connection = ConnectionManager(
            store=store,
            transport=transport,
            config=self.config,
            bus=self._bus,
            contacts=self.contacts,
            groups=self.groups,
            on_messages=self._handle_messages,
            account=account,
            logger=self.logger,
            sleep=sleep,
        )

    def __repr__(self) -> str:
        return f"Bot(uuid={self.uuid!r}, state={self.state.value!r})"

    @property
    def store(self) -> CredentialStore:
        return self._connection.store

    @property
    def account(self) -> Account:
        return self._connection.account

    @property
    def state(self) -> ConnectionState:
        return self._connection.state

    @property
    def session(self) -> Optional[Session]:
        return self._connection.session

    @property
    def is_open(self) -> bool:
        return self._connection.is_open

    @property
    def prefix(self) -> str:
        return self.config.prefix

    # --- middleware ---

    def use(self, *middlewares: Middleware) -> None:
        self._dispatcher.use(*middlewares)

    def command(self, name: str, *middlewares: Middleware) -> None:
        self._dispatcher.command(name, *middlewares)

    @property
    def commands(self) -> list[str]:
        return self._dispatcher.commands

    # --- events ---

    def on(self, event_type: type, handler: EventHandler) -> Callable[[], None]:
        """Subscribe to one event class. Returns a cleanup function."""
        return self._bus.on(event_type, handler)

    def off(self, event_type: type, handler: EventHandler) -> None:
        self._bus.off(event_type, handler)

    def events(self) -> AsyncGenerator[BotEvent, None]:
        """Every event in arrival order, until the bot closes for good."""
        return self._bus.stream()

    async def _fail(self, error: Exception) -> None:
        await self._bus.emit(Failed(error))

    # --- lifecycle ---

    async def login(self, method: Union[LoginMethod, str] = LoginMethod.QR) -> None:
        await self._connection.login(LoginMethod(method))

    async def disconnect(self, reason: Optional[BaseException] = None) -> None:
        try:
            await self._connection.close(reason)
        except Exception as e:
            self.logger.exception("Disconnect failed")
            await self._fail(e)

    async def logout(self, reason: Optional[str] = None) -> None:
        try:
            await self._connection.logout(reason)
        except Exception as e:
            self.logger.exception("Logout failed")
            await self._fail(e)

    # --- text helpers ---

    def parse_mentions(self, text: str, server: str = PN_SERVER) -> list[str]:
        return _parse_mentions(text, server)

    def parse_links(self, text: str) -> list[str]:
        return _parse_links(text)

    # --- outbound ---

    async def send_message(
        self,
        jid: str,
        content: Mapping[str, Any],
        options: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Context]:
        """Send a message and return the context of the sent message, or None on failure.

        Mentions written in the text or caption are merged into ``content["mentions"]``.
        """
        options = dict(options or {})
        if not self.is_open:
            await self._fail(TransportNotOpen())
            return None
        text = content.get("text") or content.get("caption") or ""
        server = LID_SERVER if options.get("addressing") == "lid" else PN_SERVER
        mentions = dedupe([*(content.get("mentions") or []), *_parse_mentions(str(text), server)])
        try:
            before = time.perf_counter()
            sent = await self._connection.require_session().send_message(jid, {**content, "mentions": mentions}, options)
            after = time.perf_counter()
        except Exception as e:
            self.logger.warning(f"Send to {jid} failed: {e}")
            await self._fail(e)
            return None
        if not sent:
            return None
        self.ping = (after - before) * 1000
        return Context(self, normalize_message(sent, self.account, self.contacts, self.groups))

    async def group_metadata(self, jid: str) -> Optional[GroupMetadata]:
        try:
            if not self.is_open:
                raise TransportNotOpen()
            return await self._connection.fetch_group_metadata(jid)
        except Exception as e:
            await self._fail(e)
            return None

    async def profile_picture_url(self, jid: str) -> str:
        try:
            if not self.is_open:
                raise TransportNotOpen()
            url = await self._connection.require_session().profile_picture_url(jid, "image")
        except Exception as e:
            await self._fail(e)
            return self.config.default_profile_picture
        return url or self.config.default_profile_picture

    async def download_media(self, message: MessageRecord) -> bytes:
        return await self._connection.require_session().download_media(message.raw)

    # --- inbound ---

    async def _handle_messages(self, messages: list[Mapping[str, Any]]) -> None:
        for raw in messages:
            try:
                await self._handle_message(raw)
            except Exception as e:
                self.logger.exception("Message dispatch failed")
                await self._fail(e)

    async def _handle_message(self, raw: Mapping[str, Any]) -> None:
        remote = (raw.get("key") or {}).get("remoteJid")
        if is_group(remote) and remote not in self.groups:
            metadata = await self.group_metadata(remote)
            if metadata:
                self.groups.set(remote, metadata)
        record = normalize_message(raw, self.account, self.contacts, self.groups)
        sender = record.sender
        if is_lid(sender.jid) and is_pn(sender.pn):
            self.contacts.add(Address(jid=sender.jid, pn=sender.pn, name=sender.name))
        await self._dispatcher.dispatch(Context(self, record))
