"""UI state and the events that change it.

The shell never touches the toolkit or the network. `update` turns an event
into new state plus a list of commands for the app to carry out, `view`
snapshots what should be on screen.
"""
from collections import namedtuple
import logging as log

from reochat.bridge import local_message
from reochat.config import APP_NAME

# events
ComposerTyped = namedtuple("ComposerTyped", ["text"])
Submit = namedtuple("Submit", [])
LoggedIn = namedtuple("LoggedIn", ["client", "sync_token"])
LoginFailed = namedtuple("LoginFailed", ["error"])
NewMessage = namedtuple("NewMessage", ["message"])
SendFailure = namedtuple("SendFailure", ["text", "error"])
Noop = namedtuple("Noop", [])

# commands
ScrollToEnd = namedtuple("ScrollToEnd", [])
StartSync = namedtuple("StartSync", ["client", "sync_token"])
SendText = namedtuple("SendText", ["text"])

ShellView = namedtuple("ShellView", ["title", "status", "messages", "compose_value"])

SUBSCRIPTION_KEY = "matrix-messages"


class Status(object):
    LOGGING_IN = "logging_in"
    LIVE = "live"
    FAILED = "failed"


class Subscription(object):
    """Pulls bridged messages into the update loop as NewMessage events.

    Identified by a fixed key; the app keeps one per key, so registering it
    twice is a no-op there. The receiver behind it can be taken only once.
    """

    def __init__(self, key, receiver):
        self.key = key
        self.receiver = receiver

    def __iter__(self):
        for message in self.receiver.drain():
            yield NewMessage(message)

    def close(self):
        self.receiver.close()


class Shell(object):

    def __init__(self, user_id, room_id, receiver):
        self.user_id = user_id
        self.room_id = room_id
        self.compose_value = ""
        self.messages = []
        self.client = None
        self.sync_token = None
        self.status = Status.LOGGING_IN
        self.error = None
        self._receiver = receiver

    def update(self, event):
        switch = {
            ComposerTyped: self._composer_typed,
            Submit: self._submit,
            LoggedIn: self._logged_in,
            LoginFailed: self._login_failed,
            NewMessage: self._new_message,
            SendFailure: self._send_failure,
            Noop: lambda event: [],
        }
        try:
            handler = switch[type(event)]
        except KeyError:
            log.warning("Unhandled UI event: %r", event)
            return []
        return handler(event)

    def view(self):
        return ShellView(
            title=APP_NAME,
            status=self._status_line(),
            messages=tuple(self.messages),
            compose_value=self.compose_value,
        )

    def subscription(self):
        return Subscription(SUBSCRIPTION_KEY, self._receiver.take())

    def _status_line(self):
        if self.status == Status.LOGGING_IN:
            if self.error:
                return "Logging in as %s... (%s)" % (self.user_id, self.error)
            return "Logging in as %s..." % self.user_id
        if self.status == Status.FAILED:
            return "Login failed: %s" % self.error
        return self.error or ""

    def _composer_typed(self, event):
        self.compose_value = event.text
        return []

    def _submit(self, event):
        text = self.compose_value
        if not text.strip():
            return []
        if self.status != Status.LIVE:
            self.error = "Not connected yet."
            return []

        self.messages.append(local_message(self.user_id, text))
        self.compose_value = ""
        self.error = None
        return [ScrollToEnd(), SendText(text)]

    def _logged_in(self, event):
        self.client = event.client
        self.sync_token = event.sync_token
        self.status = Status.LIVE
        self.error = None
        return [StartSync(event.client, event.sync_token)]

    def _login_failed(self, event):
        self.status = Status.FAILED
        self.error = event.error
        return []

    def _new_message(self, event):
        self.messages.append(event.message)
        return [ScrollToEnd()]

    def _send_failure(self, event):
        self.error = "Message not sent: %s" % event.error
        if not self.compose_value:
            # hand the text back so it can be sent again
            self.compose_value = event.text
        return []
