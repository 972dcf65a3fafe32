"""Builds nio clients bound to a homeserver and an encrypted on-disk store."""
import asyncio
import logging as log
import os
import secrets
import shutil
import string

import aiohttp
from nio import AsyncClient, AsyncClientConfig, LoginInfoResponse
from nio.crypto import ENCRYPTION_ENABLED

from reochat import NetworkFatal, NetworkTransient, StoreOpenFailed
from reochat.retry import Backoff, RetryPolicy
from reochat.session import ClientSession

ALPHANUMERIC = string.ascii_letters + string.digits
DB_SUBFOLDER_LENGTH = 7
PASSPHRASE_LENGTH = 32

PASSWORD_FLOW = "m.login.password"

# exceptions aiohttp raises for DNS, connect and malformed URL failures
TRANSIENT_EXCEPTIONS = (aiohttp.ClientError, asyncio.TimeoutError)


def random_string(length):
    return "".join(secrets.choice(ALPHANUMERIC) for _ in range(length))


def homeserver_url(user_id):
    """https://<server part of @localpart:server.name>"""
    return "https://" + user_id.split(":", 1)[1]


def http_status(response):
    """HTTP status of an nio response, if it came off the wire."""
    transport = getattr(response, "transport_response", None)
    return getattr(transport, "status", None)


def is_transient_status(status):
    return status is None or status == 429 or status >= 500


def client_config(passphrase, policy):
    return AsyncClientConfig(
        encryption_enabled=ENCRYPTION_ENABLED,
        pickle_key=passphrase,
        store_sync_tokens=False,  # we persist sync tokens ourselves
        max_timeouts=policy.max_attempts,
        max_limit_exceeded=policy.max_attempts,
    )


def new_client(client_session, user_id, policy, device_id=""):
    return AsyncClient(
        client_session.homeserver,
        user=user_id,
        device_id=device_id,
        store_path=client_session.db_path,
        config=client_config(client_session.passphrase, policy),
    )


async def probe(client):
    """Check the homeserver answers and accepts password logins."""
    try:
        response = await client.login_info()
    except TRANSIENT_EXCEPTIONS as e:
        raise NetworkTransient("Homeserver %s unreachable: %r" % (
            client.homeserver, e
        ))

    if isinstance(response, LoginInfoResponse):
        if PASSWORD_FLOW not in response.flows:
            raise NetworkFatal(
                "Homeserver %s does not support password login (flows: %s)" % (
                    client.homeserver, response.flows
                )
            )
        return

    status = http_status(response)
    if is_transient_status(status):
        raise NetworkTransient(response.message, code=status)
    raise NetworkFatal(response.message, code=status)


async def build(credentials, data_dir, policy=None):
    """Build a client for a first login.

    Args:
        credentials(Credentials): Who is logging in.
        data_dir(str): Where the encrypted store directory is created.
        policy(RetryPolicy): How often to retry transient failures.
    Returns:
        (AsyncClient, ClientSession): The client and the choices made for it.
    Raises:
        StoreOpenFailed: The store directory could not be created.
        NetworkFatal: The homeserver cannot be used, or retries ran out.
    """
    policy = policy or RetryPolicy()

    # picked once; retries reuse them
    db_path = os.path.join(data_dir, random_string(DB_SUBFOLDER_LENGTH))
    client_session = ClientSession(
        homeserver=homeserver_url(credentials.user_id),
        db_path=db_path,
        passphrase=random_string(PASSPHRASE_LENGTH),
    )

    try:
        os.makedirs(db_path, exist_ok=True)
    except OSError as e:
        raise StoreOpenFailed("Cannot create store at %s: %s" % (db_path, e))

    try:
        client = await connect(client_session, credentials.user_id, policy)
    except Exception:
        # no session will ever point at this store
        shutil.rmtree(db_path, ignore_errors=True)
        raise
    return client, client_session


async def connect(client_session, user_id, policy):
    log.info("Connecting to homeserver %s", client_session.homeserver)
    backoff = Backoff(policy, "Connecting to %s" % client_session.homeserver)
    while True:
        client = new_client(client_session, user_id, policy)
        try:
            await probe(client)
        except NetworkTransient as e:
            await client.close()
            await backoff.failed(e)
            continue
        except Exception:
            await client.close()
            raise
        return client


def restore(client_session, user_session, policy=None):
    """Build a logged-in client from a saved session; no network traffic.

    Raises:
        StoreOpenFailed: The encrypted store is missing or will not open.
    """
    policy = policy or RetryPolicy()
    if not os.path.isdir(client_session.db_path):
        raise StoreOpenFailed(
            "Encrypted store %s is missing" % client_session.db_path
        )

    client = new_client(
        client_session, user_session.user_id, policy,
        device_id=user_session.device_id,
    )
    try:
        # opens the encrypted store when encryption is available
        client.restore_login(
            user_id=user_session.user_id,
            device_id=user_session.device_id,
            access_token=user_session.access_token,
        )
    except Exception as e:
        raise StoreOpenFailed(
            "Cannot open store at %s: %r" % (client_session.db_path, e)
        ) from e
    log.info(
        "Restored session for %s (device %s) on %s",
        user_session.user_id, user_session.device_id, client_session.homeserver
    )
    return client
