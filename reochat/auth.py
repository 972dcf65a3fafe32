import logging as log
import os
import shutil

from nio import LoginResponse
from nio.exceptions import LocalProtocolError

from reochat import AuthRejected, NetworkFatal, SessionCorrupt, StoreOpenFailed
from reochat import factory, session
from reochat.config import APP_NAME, SESSION_FILE
from reochat.session import FullSession, UserSession

# errcodes meaning the credentials themselves were refused
REJECTED_ERRCODES = ["M_FORBIDDEN", "M_USER_DEACTIVATED", "M_INVALID_USERNAME"]


async def authenticate(credentials, data_dir, policy=None):
    """Get a logged-in client, logging in with the password only if needed.

    Args:
        credentials(Credentials): The user and password from the command line.
        data_dir(str): Directory holding the session file and the store.
        policy(RetryPolicy): Retry policy for transient network failures.
    Returns:
        (AsyncClient, str): The client and the sync token to resume from, or
        None when nothing has been synced yet.
    """
    session_file = os.path.join(data_dir, SESSION_FILE)
    if session.exists(session_file):
        return restore(credentials, session_file, policy)
    return await login(credentials, data_dir, session_file, policy)


def restore(credentials, session_file, policy=None):
    full = session.load(session_file)
    if full.user_session.user_id != credentials.user_id:
        raise SessionCorrupt(
            "Session at %s belongs to %s, not %s" % (
                session_file, full.user_session.user_id, credentials.user_id
            )
        )
    log.info("Restoring session from %s", session_file)
    client = factory.restore(full.client_session, full.user_session, policy)
    return client, full.sync_token


async def login(credentials, data_dir, session_file, policy=None):
    try:
        os.makedirs(data_dir, exist_ok=True)
    except OSError as e:
        raise StoreOpenFailed("Cannot create data directory %s: %s" % (data_dir, e))

    client, client_session = await factory.build(credentials, data_dir, policy)
    try:
        response = await send_login(client, credentials)
        user_session = UserSession.from_login(response)
        session.save(session_file, FullSession(client_session, user_session))
    except Exception:
        await client.close()
        # no session points at this store, so nothing will ever reopen it
        shutil.rmtree(client_session.db_path, ignore_errors=True)
        raise

    log.info(
        "Logged in as %s (device %s)", user_session.user_id, user_session.device_id
    )
    return client, None


async def send_login(client, credentials):
    try:
        response = await client.login(credentials.password, device_name=APP_NAME)
    except factory.TRANSIENT_EXCEPTIONS as e:
        raise NetworkFatal("Login request failed: %r" % e)
    except LocalProtocolError as e:
        # nio opens the encrypted store as part of handling the login response
        raise StoreOpenFailed("Cannot open store: %s" % e)

    if isinstance(response, LoginResponse):
        return response
    if response.status_code in REJECTED_ERRCODES:
        raise AuthRejected(response.message, code=response.status_code)
    raise NetworkFatal(response.message, code=response.status_code)
