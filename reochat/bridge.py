"""Turns room events from the sync loop into messages for the UI."""
from collections import namedtuple
import datetime
import logging as log

from dateutil import tz
from nio import RoomMessageText

from reochat import ChannelClosed

UIMessage = namedtuple("UIMessage", ["sender", "contents", "timestamp"])


def now():
    return datetime.datetime.now(tz.tzlocal())


def local_message(sender, contents):
    return UIMessage(sender=sender, contents=contents, timestamp=now())


def room_name(room):
    try:
        name = room.display_name
    except Exception as e:
        log.debug("No display name for %s: %s", room.room_id, e)
        return room.room_id
    return name or room.room_id


class MessageBridge(object):
    """Filters room messages and forwards the interesting ones.

    Only plain text from other users in rooms we have joined gets through.
    Our own messages are already on screen from the local echo.
    """

    def __init__(self, client, sender):
        self.client = client
        self.sender = sender

    def accepts(self, room, event):
        if room.room_id not in self.client.rooms:
            return False
        if event.sender == self.client.user_id:
            return False
        return isinstance(event, RoomMessageText)

    async def on_room_message(self, room, event):
        """nio event callback for RoomMessage events."""
        if not self.accepts(room, event):
            log.debug(
                "Dropping %s from %s in %s",
                type(event).__name__, event.sender, room.room_id
            )
            return

        message = UIMessage(sender=event.sender, contents=event.body, timestamp=now())
        log.debug("Message in %s from %s", room_name(room), event.sender)
        try:
            self.sender.send(message)
        except ChannelClosed as e:
            log.warning("Could not deliver message from %s: %s", event.sender, e)
