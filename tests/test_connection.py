import pytest

from fakes import BOT_LID, BOT_PN, BOT_UUID, GROUP, USER_LID, USER_PN, FakeTransport, MemoryBackend
from wabot.auth.codec import storage_key
from wabot.auth.store import CredentialStore
from wabot.bot import Bot
from wabot.config import BotConfig
from wabot.connection import should_ignore_jid
from wabot.errors import RestartRequired, TransportError, TransportNotOpen
from wabot.models.account import Account, Address
from wabot.models.events import (
    INTENTIONAL_DISCONNECT,
    Closed,
    ConnectionState,
    Failed,
    LoginMethod,
    Opened,
    OtpReady,
    QrReady,
)


class Sleeper:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class Harness:
    def __init__(self, account=None, backend=None):
        self.backend = backend or MemoryBackend()
        self.transport = FakeTransport()
        self.sleep = Sleeper()
        self.store = CredentialStore(BOT_UUID, self.backend, creds_factory=lambda: {"registered": False})
        self.bot = Bot(BOT_UUID, self.store, self.transport, account=account, sleep=self.sleep)
        self.events: list = []
        for event_type in (Opened, Closed, QrReady, OtpReady, Failed):
            self.bot.on(event_type, self.events.append)

    def of(self, event_type):
        return [e for e in self.events if isinstance(e, event_type)]


@pytest.fixture
def h():
    return Harness()


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_connects_and_registers_listeners(self, h):
        await h.bot.login(LoginMethod.QR)
        assert h.bot.state is ConnectionState.OPENING
        assert h.backend.opened == 1
        assert sorted(h.transport.session.listeners) == [
            "connection.update", "contacts.update", "creds.update", "groups.update", "messages.upsert",
        ]
        config = h.transport.configs[0]
        assert config.browser == BotConfig().browser
        assert config.browser[1] == "Firefox"
        assert config.qr_timeout_ms == 60_000
        assert config.auth.creds == {"registered": False}
        assert config.should_ignore_jid("status@broadcast")

    @pytest.mark.asyncio
    async def test_relogin_tears_down_previous_listeners(self, h):
        await h.bot.login()
        await h.bot.login()
        first, second = h.transport.sessions
        assert first.listener_count() == 0
        assert second.listener_count() == 5

    @pytest.mark.asyncio
    async def test_relogin_ends_a_live_session(self, h):
        await h.bot.login()
        first = h.transport.session
        await first.open()
        await h.bot.login()
        assert len(first.ended) == 1
        assert first.ended[0].status_code == 204
        assert first.listener_count() == 0
        assert h.bot.session is h.transport.sessions[1]
        assert h.of(Closed) == []

    @pytest.mark.asyncio
    async def test_store_failure_propagates_and_leaves_closed(self):
        class Broken(MemoryBackend):
            async def read(self, digest):
                raise OSError("disk gone")

        h = Harness(backend=Broken())
        with pytest.raises(OSError):
            await h.bot.login()
        assert h.bot.state is ConnectionState.CLOSED
        assert h.transport.sessions == []

    @pytest.mark.asyncio
    async def test_cached_group_metadata_lookup(self, h):
        from wabot.models.account import GroupMetadata

        h.bot.groups.set(GROUP, GroupMetadata(id=GROUP, subject="Friends"))
        await h.bot.login()
        lookup = h.transport.configs[0].cached_group_metadata
        assert (await lookup(GROUP)).subject == "Friends"
        assert await lookup("1@g.us") is None


class TestOpen:
    @pytest.mark.asyncio
    async def test_open_commits_account(self, h):
        await h.bot.login()
        await h.transport.session.open()
        assert h.bot.state is ConnectionState.OPEN
        assert h.bot.account == Account(jid=BOT_LID, pn=BOT_PN, name="Bot")
        assert h.of(Opened)[0].account.jid == BOT_LID
        assert h.bot.contacts.get(BOT_LID).pn == BOT_PN

    @pytest.mark.asyncio
    async def test_misclassified_identity_requires_restart(self, h):
        await h.bot.login()
        session = h.transport.session
        await session.open(user={"id": "5215550000000@lid", "lid": "111@s.whatsapp.net"})
        assert h.bot.state is ConnectionState.OPENING
        assert h.of(Opened) == []
        (error,) = session.ended
        assert isinstance(error, RestartRequired)

        await session.close(error)
        assert h.of(Closed)[0].reason.status_code == 515
        assert h.sleep.calls == []
        assert len(h.transport.sessions) == 2
        assert h.bot.state is ConnectionState.OPENING


class TestCloseCodes:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 401, 403, 404, 405])
    async def test_terminal_codes_wipe_credentials(self, h, status):
        await h.bot.login()
        await h.transport.session.emit("creds.update", {})
        assert storage_key("creds") in h.backend.data

        await h.transport.session.close(TransportError("Logged out", status_code=status))
        (closed,) = h.of(Closed)
        assert closed.reason.status_code == status
        assert h.backend.data == {}
        assert h.bot.session is None
        assert h.bot.state is ConnectionState.CLOSED
        assert len(h.transport.sessions) == 1
        assert h.bot._bus.handler_count() == 0

    @pytest.mark.asyncio
    async def test_overload_waits_then_relogs(self, h):
        await h.bot.login()
        await h.transport.session.close(TransportError("Service Unavailable", status_code=503))
        assert h.sleep.calls == [30.0]
        assert len(h.transport.sessions) == 2
        assert h.bot.state is ConnectionState.OPENING

    @pytest.mark.asyncio
    async def test_restart_relogs_immediately(self, h):
        await h.bot.login()
        await h.transport.session.close(RestartRequired())
        assert h.sleep.calls == []
        assert len(h.transport.sessions) == 2

    @pytest.mark.asyncio
    async def test_unknown_close_retries_after_delay(self, h):
        await h.bot.login()
        await h.transport.session.close(None)
        assert h.of(Closed)[0].reason.status_code is None
        assert h.sleep.calls == [5.0]
        assert len(h.transport.sessions) == 2

    @pytest.mark.asyncio
    async def test_delays_are_configurable(self):
        h = Harness()
        h.bot.config.reconnect_delay = 0.5
        await h.bot.login()
        await h.transport.session.close(TransportError("Connection Lost", status_code=408))
        assert h.sleep.calls == [0.5]

    @pytest.mark.asyncio
    async def test_intentional_disconnect_stops(self, h):
        await h.bot.login()
        session = h.transport.session
        await session.open()
        await h.bot.disconnect()
        (error,) = session.ended
        assert str(error) == INTENTIONAL_DISCONNECT

        await session.close(error)
        assert h.of(Closed)[0].reason.intentional
        assert h.bot.state is ConnectionState.CLOSED
        assert h.bot.session is None
        assert h.sleep.calls == []
        assert len(h.transport.sessions) == 1

    @pytest.mark.asyncio
    async def test_close_removes_listeners_before_acting(self, h):
        await h.bot.login()
        first = h.transport.session
        await first.close(RestartRequired())
        assert first.listener_count() == 0

    @pytest.mark.asyncio
    async def test_disconnect_and_logout_without_session(self, h):
        await h.bot.disconnect()
        await h.bot.logout()
        assert h.events == []


class TestPairing:
    @pytest.mark.asyncio
    async def test_qr_is_emitted(self, h):
        await h.bot.login(LoginMethod.QR)
        await h.transport.session.emit("connection.update", {"qr": "2@abc"})
        assert h.of(QrReady) == [QrReady("2@abc")]

    @pytest.mark.asyncio
    async def test_otp_requires_phone_number(self, h):
        await h.bot.login(LoginMethod.OTP)
        session = h.transport.session
        await session.emit("connection.update", {"qr": "2@abc"})
        assert session.pairing_requests == []
        (error,) = session.ended
        assert error.status_code == 400
        assert h.of(QrReady) == []

    @pytest.mark.asyncio
    async def test_otp_code_is_emitted(self):
        h = Harness(account=Account(pn=BOT_PN))
        await h.bot.login("otp")
        await h.transport.session.emit("connection.update", {"qr": "2@abc"})
        assert h.transport.session.pairing_requests == ["5215550000000"]
        assert h.of(OtpReady) == [OtpReady("ABCD1234")]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failure", ["empty", "raise"])
    async def test_otp_failure_closes_non_retryably(self, failure):
        h = Harness(account=Account(pn=BOT_PN))
        await h.bot.login(LoginMethod.OTP)
        session = h.transport.session
        if failure == "empty":
            session.pairing_code = None
        else:
            session.pairing_error = TransportError("rate limited", status_code=429)
        await session.emit("connection.update", {"qr": "2@abc"})
        assert h.of(OtpReady) == []
        (error,) = session.ended
        assert error.status_code == 400

        await session.close(error)
        assert h.bot.state is ConnectionState.CLOSED
        assert h.sleep.calls == []


class TestListeners:
    @pytest.mark.asyncio
    async def test_creds_update_saves(self, h):
        await h.bot.login()
        await h.transport.session.emit("creds.update", {"me": {"id": BOT_PN}})
        assert storage_key("creds") in h.backend.data

    @pytest.mark.asyncio
    async def test_listener_failures_are_emitted_not_raised(self, h):
        await h.bot.login()
        # group refresh needs an open session
        await h.transport.session.emit("groups.update", [{"id": GROUP}])
        (failed,) = h.of(Failed)
        assert isinstance(failed.error, TransportNotOpen)

    @pytest.mark.asyncio
    async def test_contacts_update_renames_known_contacts(self, h):
        h.bot.contacts.add(Address(jid=USER_LID, pn=USER_PN, name="Alice"))
        await h.bot.login()
        await h.transport.session.emit("contacts.update", [
            {"id": USER_LID, "notify": "Alice N"},
            {"id": "333@lid", "notify": "Stranger"},
            {"id": USER_PN, "notify": "By number"},
        ])
        assert h.bot.contacts.get(USER_LID).name == "Alice N"
        assert "333@lid" not in h.bot.contacts

        await h.transport.session.emit("contacts.update", [{"id": USER_LID, "verifiedName": "Alice Co", "notify": "x"}])
        assert h.bot.contacts.get(USER_LID).name == "Alice Co"

    @pytest.mark.asyncio
    async def test_groups_update_refetches(self, h):
        from wabot.models.account import GroupMetadata

        h.bot.groups.set(GROUP, GroupMetadata(id=GROUP, subject="Old"))
        await h.bot.login()
        session = h.transport.session
        await session.open()
        session.groups[GROUP] = {"id": GROUP, "subject": "New", "participants": []}
        await session.emit("groups.update", [{"id": GROUP}, {"id": USER_LID}])
        assert h.bot.groups.get(GROUP).subject == "New"
        assert session.group_requests == [GROUP]


def test_should_ignore_jid():
    assert should_ignore_jid("status@broadcast")
    assert should_ignore_jid("")
    assert not should_ignore_jid(GROUP)
    assert not should_ignore_jid(USER_PN)
    assert not should_ignore_jid(USER_LID)
