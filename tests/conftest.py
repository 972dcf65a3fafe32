"""
Shared fixtures and a scripted stand-in for nio.AsyncClient.

The fake client replays a list of sync results. Like nio, it runs the
registered event callbacks for every event in a response before `sync`
returns, which is what the sync engine's ordering relies on.
"""
import os

import pytest
from nio import MatrixRoom, RoomMessageImage, RoomMessageText, RoomSendResponse

from reochat import session
from reochat.retry import RetryPolicy
from reochat.session import ClientSession, FullSession, UserSession

ALICE = "@alice:example.org"
BOB = "@bob:example.org"
ROOM_ID = "!room:example.org"


class ScriptExhausted(Exception):
    """Raised by FakeClient.sync once every scripted response was used."""


class FakeSyncResponse(object):

    def __init__(self, next_batch, events=()):
        self.next_batch = next_batch
        self.events = list(events)


class FakeClient(object):

    def __init__(self, homeserver="https://example.org", user=ALICE, device_id="",
                 store_path="", config=None, responses=()):
        self.homeserver = homeserver
        self.user = user
        self.user_id = user
        self.device_id = device_id
        self.store_path = store_path
        self.config = config
        self.access_token = None
        self.rooms = {}
        self.responses = list(responses)
        self.sync_calls = []
        self.callbacks = []
        self.sent = []
        self.room_send_result = None
        self.login_result = None
        self.login_calls = []
        self.restored = None
        self.should_upload_keys = False
        self.should_query_keys = False
        self.closed = False

    def join(self, room_id):
        room = MatrixRoom(room_id, self.user_id)
        self.rooms[room_id] = room
        return room

    def add_event_callback(self, callback, filter):
        self.callbacks.append((callback, filter))

    async def sync(self, timeout=0, sync_filter=None, since=None, full_state=None):
        self.sync_calls.append(since)
        if not self.responses:
            raise ScriptExhausted()
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, FakeSyncResponse):
            for room, event in item.events:
                for callback, event_filter in self.callbacks:
                    if isinstance(event, event_filter):
                        await callback(room, event)
        return item

    async def login(self, password, device_name=""):
        self.login_calls.append((password, device_name))
        return self.login_result

    def restore_login(self, user_id, device_id, access_token):
        self.restored = (user_id, device_id, access_token)
        self.user_id = user_id
        self.device_id = device_id
        self.access_token = access_token

    async def room_send(self, room_id, message_type, content, tx_id=None,
                        ignore_unverified_devices=False):
        self.sent.append((room_id, message_type, content))
        if isinstance(self.room_send_result, Exception):
            raise self.room_send_result
        return self.room_send_result or RoomSendResponse("$sent", room_id)

    async def keys_upload(self):
        pass

    async def keys_query(self):
        pass

    async def send_to_device_messages(self):
        return []

    async def close(self):
        self.closed = True


def text_event(sender, body, event_id="$text"):
    return RoomMessageText.from_dict({
        "event_id": event_id,
        "sender": sender,
        "origin_server_ts": 1700000000000,
        "type": "m.room.message",
        "content": {"msgtype": "m.text", "body": body},
    })


def image_event(sender, event_id="$image"):
    return RoomMessageImage.from_dict({
        "event_id": event_id,
        "sender": sender,
        "origin_server_ts": 1700000000000,
        "type": "m.room.message",
        "content": {
            "msgtype": "m.image",
            "body": "cat.png",
            "url": "mxc://example.org/cat",
        },
    })


@pytest.fixture
def policy():
    return RetryPolicy(max_attempts=3, base_delay=0, max_delay=0)


@pytest.fixture
def full_session(tmp_path):
    return FullSession(
        ClientSession(
            homeserver="https://example.org",
            db_path=os.path.join(str(tmp_path), "AbCdEfG"),
            passphrase="p" * 32,
        ),
        UserSession(user_id=ALICE, device_id="DEVICE", access_token="token"),
    )


@pytest.fixture
def session_file(tmp_path, full_session):
    path = os.path.join(str(tmp_path), "session")
    session.save(path, full_session)
    return path
