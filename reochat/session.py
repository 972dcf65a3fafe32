"""Persistent session state.

The session file holds everything needed to resume without a password login:
where the homeserver and the encrypted store are, the store's passphrase, the
access token and device, and the last acknowledged sync token.
"""
import json
import logging as log
import os
import tempfile

from reochat import SessionCorrupt, SessionMissing, SessionWriteError


class ClientSession(object):
    """Fixed once at first login: homeserver, store location and passphrase."""
    HS = "homeserver"
    DB = "db_path"
    PASS = "passphrase"

    def __init__(self, homeserver, db_path, passphrase):
        self.homeserver = homeserver
        self.db_path = db_path
        self.passphrase = passphrase

    def to_dict(self):
        return {
            ClientSession.HS: self.homeserver,
            ClientSession.DB: self.db_path,
            ClientSession.PASS: self.passphrase,
        }

    @classmethod
    def from_dict(cls, j):
        return cls(
            homeserver=j[ClientSession.HS],
            db_path=j[ClientSession.DB],
            passphrase=j[ClientSession.PASS],
        )

    def __eq__(self, other):
        return isinstance(other, ClientSession) and self.to_dict() == other.to_dict()

    def __repr__(self):
        return "ClientSession(homeserver=%r, db_path=%r)" % (
            self.homeserver, self.db_path
        )


class UserSession(object):
    """What the homeserver handed back at login."""
    USR = "user_id"
    DEV = "device_id"
    TOK = "access_token"

    def __init__(self, user_id, device_id, access_token):
        self.user_id = user_id
        self.device_id = device_id
        self.access_token = access_token

    @classmethod
    def from_login(cls, response):
        """Build from an nio LoginResponse."""
        return cls(
            user_id=response.user_id,
            device_id=response.device_id,
            access_token=response.access_token,
        )

    def to_dict(self):
        return {
            UserSession.USR: self.user_id,
            UserSession.DEV: self.device_id,
            UserSession.TOK: self.access_token,
        }

    @classmethod
    def from_dict(cls, j):
        return cls(
            user_id=j[UserSession.USR],
            device_id=j[UserSession.DEV],
            access_token=j[UserSession.TOK],
        )

    def __eq__(self, other):
        return isinstance(other, UserSession) and self.to_dict() == other.to_dict()

    def __repr__(self):
        return "UserSession(user_id=%r, device_id=%r)" % (
            self.user_id, self.device_id
        )


class FullSession(object):
    CLIENT = "client_session"
    USER = "user_session"
    TOKEN = "sync_token"

    def __init__(self, client_session, user_session, sync_token=None):
        self.client_session = client_session
        self.user_session = user_session
        self.sync_token = sync_token

    def with_sync_token(self, sync_token):
        return FullSession(self.client_session, self.user_session, sync_token)

    def to_dict(self):
        j = {
            FullSession.CLIENT: self.client_session.to_dict(),
            FullSession.USER: self.user_session.to_dict(),
        }
        if self.sync_token is not None:
            j[FullSession.TOKEN] = self.sync_token
        return j

    @classmethod
    def from_dict(cls, j):
        return cls(
            client_session=ClientSession.from_dict(j[FullSession.CLIENT]),
            user_session=UserSession.from_dict(j[FullSession.USER]),
            sync_token=j.get(FullSession.TOKEN),
        )

    @classmethod
    def to_file(cls, session, f):
        f.write(json.dumps(session.to_dict(), indent=4))

    @classmethod
    def from_file(cls, f):
        try:
            return FullSession.from_dict(json.load(f))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise SessionCorrupt("Session file is unreadable: %r" % e)

    def __eq__(self, other):
        return isinstance(other, FullSession) and self.to_dict() == other.to_dict()

    def __repr__(self):
        return "FullSession(%r, %r, sync_token=%r)" % (
            self.client_session, self.user_session, self.sync_token
        )


def exists(path):
    return os.path.isfile(path)


def load(path):
    """Read the session at path.

    Raises:
        SessionMissing: Nothing has been saved at path yet.
        SessionCorrupt: The file exists but does not hold a session.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            return FullSession.from_file(f)
    except FileNotFoundError:
        raise SessionMissing("No session at %s" % path)
    except UnicodeDecodeError as e:
        raise SessionCorrupt("Session file is not UTF-8: %s" % e)


def save(path, session):
    """Atomically replace the session at path.

    The document is written to a temporary file in the same directory and
    renamed over the target, so a crash leaves either the old or the new
    session on disk.

    Raises:
        SessionWriteError: The file could not be written.
    """
    directory = os.path.dirname(os.path.abspath(path))
    tmp_path = None
    try:
        fd, tmp_path = tempfile.mkstemp(
            prefix=".%s." % os.path.basename(path), suffix=".tmp", dir=directory
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            FullSession.to_file(session, f)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise SessionWriteError("Could not write session to %s: %s" % (path, e))
    log.debug("Saved session to %s (sync_token=%s)", path, session.sync_token)
