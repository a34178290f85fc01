"""
Connection lifecycle manager.

Owns the transport session, the connection state and the operating account.
Every ``login`` tears down the previous listener set before registering a new
one; the close-code table decides between wiping credentials, retrying, or
stopping.

    closed -(login)-> opening -(open)-> open
    open | opening -(close)-> closed | reconnecting
    reconnecting -(login)-> opening
"""

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional

from wabot.auth.store import CredentialStore
from wabot.cache import ContactCache, GroupCache
from wabot.config import BotConfig
from wabot.errors import RestartRequired, TransportError, TransportNotOpen
from wabot.events import EventBus
from wabot.jid import JidKind, classify, is_group, is_lid, is_pn, normalize
from wabot.models.account import Account, Address, GroupMetadata
from wabot.models.events import (
    INTENTIONAL_DISCONNECT,
    INTENTIONAL_STATUS,
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
from wabot.transport import Listener, Session, SessionUser, SocketConfig, Transport

TERMINAL_CODES = frozenset({400, 401, 403, 404, 405})
OVERLOADED = 503
RESTART_REQUIRED = 515

MessagesHandler = Callable[[list[Mapping[str, Any]]], Awaitable[None]]
Sleep = Callable[[float], Awaitable[Any]]


def should_ignore_jid(jid: str) -> bool:
    return classify(jid) is JidKind.UNKNOWN


class ConnectionManager:
    def __init__(
        self,
        store: CredentialStore,
        transport: Transport,
        config: BotConfig,
        bus: EventBus,
        contacts: ContactCache,
        groups: GroupCache,
        on_messages: MessagesHandler,
        account: Optional[Account] = None,
        logger: Optional[logging.Logger] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.store = store
        self.account = account or Account()
        self.state = ConnectionState.CLOSED
        self.session: Optional[Session] = None
        self._transport = transport
        self._config = config
        self._bus = bus
        self._contacts = contacts
        self._groups = groups
        self._on_messages = on_messages
        self._logger = logger or logging.getLogger(f"wabot.bot.{store.uuid}")
        self._sleep = sleep
        self._listeners: list[tuple[Session, str, Listener]] = []

    @property
    def is_open(self) -> bool:
        return self.session is not None and self.session.is_open

    def require_session(self) -> Session:
        if not self.is_open:
            raise TransportNotOpen()
        return self.session  # type: ignore[return-value]

    def _current(self) -> Session:
        if self.session is None:
            raise TransportNotOpen("No transport session.")
        return self.session

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self.state:
            self._logger.info(f"Connection state {self.state.value} -> {state.value}")
        self.state = state

    # --- login ---

    async def login(self, method: LoginMethod = LoginMethod.QR) -> None:
        """Open a transport session. Store errors propagate and leave the state ``closed``."""
        method = LoginMethod(method)
        self._set_state(ConnectionState.OPENING)
        try:
            auth = await self.store.init()
        except Exception:
            self._set_state(ConnectionState.CLOSED)
            raise
        self._teardown()
        previous = self.session
        if previous is not None and previous.is_open:
            self._logger.info("Ending the previous session before reconnecting")
            previous.end(TransportError(INTENTIONAL_DISCONNECT, status_code=INTENTIONAL_STATUS))
        session = await self._transport.connect(SocketConfig(
            auth=auth,
            browser=self._config.browser,
            logger=self._logger.getChild("transport"),
            qr_timeout_ms=self._config.qr_timeout_ms,
            connect_timeout_ms=self._config.connect_timeout_ms,
            mark_online_on_connect=self._config.mark_online_on_connect,
            sync_full_history=self._config.sync_full_history,
            generate_high_quality_link_preview=self._config.generate_high_quality_link_preview,
            link_preview_thumbnail_width=self._config.link_preview_thumbnail_width,
            should_ignore_jid=should_ignore_jid,
            cached_group_metadata=self._cached_group_metadata,
        ))
        self.session = session
        self._register(session, TransportEvent.CREDS_UPDATE, self._on_creds_update)
        self._register(session, TransportEvent.CONNECTION_UPDATE, functools.partial(self._on_connection_update, method))
        self._register(session, TransportEvent.MESSAGES_UPSERT, self._on_messages_upsert)
        self._register(session, TransportEvent.CONTACTS_UPDATE, self._on_contacts_update)
        self._register(session, TransportEvent.GROUPS_UPDATE, self._on_groups_update)
        self._logger.info(f"Login started with method {method.value}")

    def _register(self, session: Session, event: str, handler: Callable[[Any], Awaitable[None]]) -> None:
        listener = self._guard(event, handler)
        session.on(event, listener)
        self._listeners.append((session, event, listener))

    def _guard(self, event: str, handler: Callable[[Any], Awaitable[None]]) -> Listener:
        """Wrap a listener so that its failures are reported instead of raised."""

        async def listener(payload: Any) -> None:
            try:
                await handler(payload)
            except Exception as e:
                self._logger.exception(f"Listener for {event} failed")
                await self._bus.emit(Failed(e))

        return listener

    def _teardown(self) -> None:
        listeners, self._listeners = self._listeners, []
        for session, event, listener in listeners:
            session.off(event, listener)

    async def _cached_group_metadata(self, jid: str) -> Optional[GroupMetadata]:
        return self._groups.get(jid)

    # --- closing ---

    async def close(self, error: Optional[BaseException] = None) -> None:
        """Ask the transport to end the session. The close update drives the state."""
        if self.session is None:
            return
        if error is None:
            error = TransportError(INTENTIONAL_DISCONNECT, status_code=INTENTIONAL_STATUS)
        self.session.end(error)

    async def logout(self, reason: Optional[str] = None) -> None:
        if self.session is None:
            return
        await self.session.logout(reason)

    # --- listeners ---

    async def _on_creds_update(self, _payload: Any) -> None:
        await self.store.save()

    async def _on_connection_update(self, method: LoginMethod, payload: Any) -> None:
        update = ConnectionUpdate.from_transport(payload)
        if update.qr:
            await self._on_qr(method, update.qr)
        if update.connection == "close":
            await self._on_close(method, update.error)
        elif update.connection == "open":
            await self._on_open()

    async def _on_qr(self, method: LoginMethod, qr: str) -> None:
        if method is not LoginMethod.OTP:
            await self._bus.emit(QrReady(qr))
            return
        if not is_pn(self.account.pn):
            await self.close(TransportError(
                "The OTP code cannot be generated because a number was not provided.", status_code=400,
            ))
            return
        number = self.account.pn.split("@", 1)[0]
        try:
            code = await self._current().request_pairing_code(number)
        except Exception as e:
            self._logger.warning(f"Pairing code request for {number} failed: {e}")
            code = None
        if not code:
            await self.close(TransportError(f"An OTP code could not be generated for '@{number}'", status_code=400))
            return
        await self._bus.emit(OtpReady(code))

    async def _on_close(self, method: LoginMethod, error: Optional[BaseException]) -> None:
        self._teardown()
        reason = CloseReason.from_error(error)
        self._logger.warning(f"Connection closed: {reason}")
        await self._bus.emit(Closed(reason))

        status = reason.status_code
        if status in TERMINAL_CODES:
            try:
                await self.store.remove()
            finally:
                self._release()
        elif status == OVERLOADED:
            await self._sleep(self._config.overload_delay)
            await self._relogin(method)
        elif status == RESTART_REQUIRED:
            await self._relogin(method)
        elif reason.intentional:
            self._release()
        else:
            await self._sleep(self._config.reconnect_delay)
            await self._relogin(method)

    def _release(self) -> None:
        self.session = None
        self._bus.clear()
        self._set_state(ConnectionState.CLOSED)

    async def _relogin(self, method: LoginMethod) -> None:
        self._set_state(ConnectionState.RECONNECTING)
        await self.login(method)

    async def _on_open(self) -> None:
        user = SessionUser.model_validate(self._current().user or {})
        jid = normalize(user.lid)
        pn = normalize(user.id)
        if not (is_lid(jid) and is_pn(pn)):
            await self.close(RestartRequired())
            return
        self.account = Account(jid=jid, pn=pn, name=user.verified_name or user.name or "")
        self._contacts.set(Address(jid=jid, pn=pn, name=self.account.name))
        self._set_state(ConnectionState.OPEN)
        await self._bus.emit(Opened(self.account.model_copy()))

    async def _on_messages_upsert(self, payload: Any) -> None:
        upsert = payload if isinstance(payload, Mapping) else {}
        messages = upsert.get("messages") or []
        if upsert.get("type") != "notify" or not messages:
            return
        await self._on_messages(list(messages))

    async def _on_contacts_update(self, updates: Iterable[Mapping[str, Any]]) -> None:
        for update in updates or []:
            jid = update.get("id")
            if not is_lid(jid):
                continue
            self._contacts.rename(jid, update.get("verifiedName") or update.get("notify") or "")

    async def _on_groups_update(self, updates: Iterable[Mapping[str, Any]]) -> None:
        for update in updates or []:
            jid = update.get("id")
            if not is_group(jid):
                continue
            self._groups.invalidate(jid)
            metadata = await self.fetch_group_metadata(jid)
            if metadata:
                self._groups.set(jid, metadata)

    async def fetch_group_metadata(self, jid: str) -> Optional[GroupMetadata]:
        """Cached metadata, else a transport lookup. Raises TransportNotOpen when disconnected."""
        cached = self._groups.get(jid)
        if cached is not None:
            return cached
        return GroupMetadata.from_transport(await self.require_session().group_metadata(jid))
