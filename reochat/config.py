import os

from reochat import InvalidUserId

APP_NAME = "ReoChat"
SESSION_FILE = "session"

# long-poll timeout handed to the homeserver
SYNC_TIMEOUT_MS = 30000

LAZY_LOAD_FILTER = {
    "room": {
        "state": {"lazy_load_members": True},
        "timeline": {"lazy_load_members": True},
    }
}


def default_data_dir():
    """Where sessions and encrypted stores live unless told otherwise."""
    override = os.environ.get("REOCHAT_DATA_DIR")
    if override:
        return override
    xdg_data = os.environ.get("XDG_DATA_HOME") or os.path.join(
        os.path.expanduser("~"), ".local", "share"
    )
    return os.path.join(xdg_data, "reochat")


class Credentials(object):

    def __init__(self, user_id, password):
        if not user_id.startswith("@") or ":" not in user_id:
            raise InvalidUserId(
                "'%s' is not a user id of the form @user:server" % user_id
            )
        self.user_id = user_id
        self.password = password

    @property
    def server_name(self):
        return self.user_id.split(":", 1)[1]

    def __repr__(self):
        # never log the password
        return "Credentials(user_id=%r)" % self.user_id


class ReoChatConfig(object):
    """Everything a run of the client needs, as given on the command line."""

    def __init__(self, credentials, room_id, data_dir=None):
        self.credentials = credentials
        self.room_id = room_id
        self.data_dir = data_dir or default_data_dir()

    @property
    def user_id(self):
        return self.credentials.user_id

    @property
    def session_file(self):
        return os.path.join(self.data_dir, SESSION_FILE)

    @classmethod
    def from_args(cls, args):
        return cls(
            credentials=Credentials(args.username, args.password),
            room_id=args.room_id,
            data_dir=args.data_dir,
        )
