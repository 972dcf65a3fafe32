

class ReoChatError(Exception):
    """A standard ReoChat error, which can be shown to the user."""

    def __init__(self, msg="", code=None):
        Exception.__init__(self, msg)
        self.code = code
        self.msg = msg

    def as_str(self):
        if self.code:
            return "(%s) : %s" % (self.code, self.msg)
        return self.msg


class SessionMissing(ReoChatError):
    """No session file exists; a fresh login is needed."""


class SessionCorrupt(ReoChatError):
    """The session file exists but cannot be used."""


class SessionWriteError(ReoChatError):
    """The session file could not be written."""


class NetworkTransient(ReoChatError):
    """A network failure worth retrying."""


class NetworkFatal(ReoChatError):
    """A network failure that retrying will not fix."""


class RetriesExhausted(NetworkFatal):
    pass


class AuthRejected(ReoChatError):
    """The homeserver refused the credentials."""


class StoreOpenFailed(ReoChatError):
    """The encrypted local store could not be opened."""


class SendFailed(ReoChatError):
    pass


class InvalidUserId(ReoChatError):
    pass


class InvalidRoomId(ReoChatError):
    pass


class ChannelClosed(ReoChatError):
    pass
