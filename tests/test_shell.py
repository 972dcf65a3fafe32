import pytest

from reochat import ChannelClosed
from reochat.bridge import MessageBridge, UIMessage, now
from reochat.channel import channel
from reochat.shell import (
    SUBSCRIPTION_KEY, ComposerTyped, LoggedIn, LoginFailed, NewMessage, Noop,
    ScrollToEnd, SendFailure, SendText, Shell, StartSync, Status, Submit,
)

from .conftest import ALICE, BOB, ROOM_ID, FakeClient, text_event


@pytest.fixture
def pipe():
    return channel()


@pytest.fixture
def shell(pipe):
    return Shell(ALICE, ROOM_ID, pipe[1])


@pytest.fixture
def live_shell(shell):
    shell.update(LoggedIn(FakeClient(), "T0"))
    return shell


def type_text(shell, text):
    return shell.update(ComposerTyped(text))


class TestSubmit:

    def test_local_echo(self, live_shell):
        type_text(live_shell, "hello")

        commands = live_shell.update(Submit())

        assert commands == [ScrollToEnd(), SendText("hello")]
        [message] = live_shell.messages
        assert (message.sender, message.contents) == (ALICE, "hello")
        assert live_shell.compose_value == ""

    @pytest.mark.asyncio
    async def test_echo_from_server_is_not_duplicated(self, live_shell, pipe):
        sender, _ = pipe
        client = FakeClient()
        room = client.join(ROOM_ID)
        bridge = MessageBridge(client, sender)
        type_text(live_shell, "hello")
        live_shell.update(Submit())

        await bridge.on_room_message(room, text_event(ALICE, "hello"))
        await bridge.on_room_message(room, text_event(BOB, "hi"))
        for event in live_shell.subscription():
            live_shell.update(event)

        assert [(m.sender, m.contents) for m in live_shell.messages] == [
            (ALICE, "hello"), (BOB, "hi"),
        ]

    @pytest.mark.parametrize("text", ["", "   ", "\n"])
    def test_blank_is_ignored(self, live_shell, text):
        type_text(live_shell, text)
        assert live_shell.update(Submit()) == []
        assert live_shell.messages == []

    def test_before_login(self, shell):
        type_text(shell, "too early")

        assert shell.update(Submit()) == []
        assert shell.messages == []
        assert shell.compose_value == "too early"
        assert "Not connected" in shell.view().status
        assert "Logging in" in shell.view().status


class TestLogin:

    def test_logged_in_starts_sync(self, shell):
        client = FakeClient()
        commands = shell.update(LoggedIn(client, "T0"))

        assert commands == [StartSync(client, "T0")]
        assert shell.status == Status.LIVE
        assert shell.client is client

    def test_login_failed_is_terminal(self, shell):
        assert shell.update(LoginFailed("(M_FORBIDDEN) : Invalid password")) == []
        assert shell.status == Status.FAILED
        assert "Invalid password" in shell.view().status

        type_text(shell, "hello")
        assert shell.update(Submit()) == []


class TestIncoming:

    def test_new_message_appends_and_scrolls(self, live_shell):
        message = UIMessage(BOB, "hi", now())
        assert live_shell.update(NewMessage(message)) == [ScrollToEnd()]
        assert live_shell.messages == [message]

    def test_subscription_yields_in_order(self, live_shell, pipe):
        sender, _ = pipe
        for body in ["one", "two", "three"]:
            sender.send(UIMessage(BOB, body, now()))

        subscription = live_shell.subscription()
        events = list(subscription)

        assert subscription.key == SUBSCRIPTION_KEY
        assert [e.message.contents for e in events] == ["one", "two", "three"]
        assert all(isinstance(e, NewMessage) for e in events)

    def test_subscription_only_once(self, shell):
        shell.subscription()
        with pytest.raises(ChannelClosed):
            shell.subscription()

    def test_closing_subscription_stops_senders(self, shell, pipe):
        sender, _ = pipe
        shell.subscription().close()
        with pytest.raises(ChannelClosed):
            sender.send(UIMessage(BOB, "late", now()))


class TestSendFailure:

    def test_text_goes_back_to_composer(self, live_shell):
        type_text(live_shell, "hello")
        live_shell.update(Submit())

        live_shell.update(SendFailure("hello", "(M_FORBIDDEN) : Not in room"))

        assert live_shell.compose_value == "hello"
        assert "Message not sent" in live_shell.view().status

    def test_does_not_clobber_new_draft(self, live_shell):
        type_text(live_shell, "draft")
        live_shell.update(SendFailure("hello", "timeout"))
        assert live_shell.compose_value == "draft"

    def test_next_submit_clears_error(self, live_shell):
        live_shell.update(SendFailure("hello", "timeout"))
        live_shell.update(Submit())
        assert live_shell.view().status == ""


def test_view_snapshot(live_shell):
    type_text(live_shell, "typing")
    view = live_shell.view()
    assert view.title == "ReoChat"
    assert view.compose_value == "typing"
    assert view.messages == ()


def test_noop_and_unknown_events(live_shell):
    assert live_shell.update(Noop()) == []
    assert live_shell.update("what is this") == []
