import logging as log
import re
import uuid

from nio import RoomSendResponse
from nio.exceptions import LocalProtocolError

from reochat import InvalidRoomId, SendFailed
from reochat.factory import TRANSIENT_EXCEPTIONS

ROOM_ID_RE = re.compile(r"^![^:\s]+:\S+$")


def check_room_id(room_id):
    if not ROOM_ID_RE.match(room_id or ""):
        raise InvalidRoomId("'%s' is not a room id of the form !room:server" % room_id)
    return room_id


async def send_text(client, room_id, text):
    """Send text to room_id as a plain m.text message.

    Returns:
        str: The event id the homeserver gave the message.
    Raises:
        InvalidRoomId: room_id is malformed.
        SendFailed: The homeserver or the network refused the message.
    """
    check_room_id(room_id)
    content = {"msgtype": "m.text", "body": text}
    tx_id = str(uuid.uuid4())
    try:
        response = await client.room_send(
            room_id,
            "m.room.message",
            content,
            tx_id=tx_id,
            ignore_unverified_devices=True,
        )
    except TRANSIENT_EXCEPTIONS as e:
        raise SendFailed("Problem making request: %r" % e)
    except LocalProtocolError as e:
        raise SendFailed(str(e))

    if not isinstance(response, RoomSendResponse):
        raise SendFailed(response.message, code=response.status_code)
    log.debug("Sent %s to %s (txn %s)", response.event_id, room_id, tx_id)
    return response.event_id
