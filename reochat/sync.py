import logging as log

from nio import RoomMessage, SyncError

from reochat import NetworkFatal, NetworkTransient, ReoChatError, SessionWriteError
from reochat import session
from reochat.bridge import MessageBridge
from reochat.config import LAZY_LOAD_FILTER, SYNC_TIMEOUT_MS
from reochat.factory import TRANSIENT_EXCEPTIONS
from reochat.retry import Backoff, RetryPolicy

# errcodes after which syncing again cannot succeed
FATAL_ERRCODES = [
    "M_UNKNOWN_TOKEN", "M_MISSING_TOKEN", "M_FORBIDDEN", "M_USER_DEACTIVATED"
]


class SyncState(object):
    NEW = "new"
    INITIAL_SYNC = "initial_sync"
    HANDLER_REGISTERED = "handler_registered"
    LIVE = "live"
    TERMINATED = "terminated"


class SyncEngine(object):
    """Keeps a client in sync with its homeserver and persists the cursor.

    Runs a catch-up sync first, then registers the room message handler so
    history already seen is not replayed, then long-polls until stopped or
    until an error retrying cannot fix.
    """

    def __init__(self, client, session_file, sender, policy=None,
                 timeout_ms=SYNC_TIMEOUT_MS):
        self.client = client
        self.session_file = session_file
        self.bridge = MessageBridge(client, sender)
        self.policy = policy or RetryPolicy()
        self.timeout_ms = timeout_ms
        self.state = SyncState.NEW
        self.sync_token = None
        self.full_session = None

    async def run(self, initial_token=None):
        self.sync_token = initial_token
        try:
            await self.initial_sync()
            self.register_handler()
            await self.event_loop()
        except ReoChatError as e:
            log.error("Sync stopped: %s", e.as_str())
            raise
        finally:
            self.state = SyncState.TERMINATED

    def stop(self):
        log.info("Stopping sync.")
        self.state = SyncState.TERMINATED

    async def initial_sync(self):
        if self.state != SyncState.NEW:
            raise ReoChatError("Initial sync already ran (state=%s)" % self.state)
        self.state = SyncState.INITIAL_SYNC
        self.full_session = session.load(self.session_file)

        log.info("Performing initial sync (since=%s)", self.sync_token)
        backoff = Backoff(self.policy, "Initial sync")
        while True:
            try:
                response = await self.sync_once(timeout=0)
                break
            except NetworkTransient as e:
                await backoff.failed(e)

        self.advance(response.next_batch)
        log.info("Initial sync complete (next_batch=%s)", self.sync_token)

    def register_handler(self):
        if self.state != SyncState.INITIAL_SYNC:
            raise ReoChatError("Cannot register handler in state %s" % self.state)
        self.client.add_event_callback(self.bridge.on_room_message, RoomMessage)
        self.state = SyncState.HANDLER_REGISTERED

    async def event_loop(self):
        self.state = SyncState.LIVE
        log.info("Listening for incoming events.")
        backoff = Backoff(self.policy, "Sync")
        while self.state == SyncState.LIVE:
            await self.housekeeping()
            try:
                response = await self.sync_once(timeout=self.timeout_ms)
            except NetworkTransient as e:
                await backoff.failed(e)
                continue
            backoff.reset()
            if self.state != SyncState.LIVE:
                break
            self.on_sync_response(response)

    def on_sync_response(self, response):
        """Called after nio has dispatched every event in the response."""
        try:
            self.advance(response.next_batch)
        except SessionWriteError as e:
            # keep going on the in-memory cursor; the next save may succeed
            log.error("Could not persist sync token: %s", e.as_str())

    async def sync_once(self, timeout):
        try:
            response = await self.client.sync(
                timeout=timeout,
                since=self.sync_token,
                sync_filter=LAZY_LOAD_FILTER,
            )
        except TRANSIENT_EXCEPTIONS as e:
            raise NetworkTransient("Sync request failed: %r" % e)

        if isinstance(response, SyncError):
            if response.status_code in FATAL_ERRCODES:
                raise NetworkFatal(response.message, code=response.status_code)
            raise NetworkTransient(response.message, code=response.status_code)
        return response

    def advance(self, next_batch):
        self.sync_token = next_batch
        if next_batch == self.full_session.sync_token:
            return
        self.full_session = self.full_session.with_sync_token(next_batch)
        session.save(self.session_file, self.full_session)

    async def housekeeping(self):
        """Key uploads and to-device messages, as nio's sync_forever does."""
        try:
            if self.client.should_upload_keys:
                await self.client.keys_upload()
            if self.client.should_query_keys:
                await self.client.keys_query()
            await self.client.send_to_device_messages()
        except TRANSIENT_EXCEPTIONS as e:
            log.warning("Key housekeeping failed, will retry: %r", e)
