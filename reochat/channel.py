"""An unbounded many-producer, single-consumer channel between threads.

Senders live on the asyncio thread and are cheap to share. The receiver is
handed over exactly once, to whoever drains it on the GUI thread.
"""
import queue
import threading

from reochat import ChannelClosed


class _State(object):

    def __init__(self):
        self.queue = queue.Queue()
        self.closed = False
        self.taken = False
        self.lock = threading.Lock()


class Sender(object):

    def __init__(self, state):
        self._state = state

    def send(self, item):
        """Queue item without blocking.

        Raises:
            ChannelClosed: The receiver has been closed.
        """
        if self._state.closed:
            raise ChannelClosed("Receiver has been dropped")
        self._state.queue.put_nowait(item)


class Receiver(object):

    def __init__(self, state):
        self._state = state

    def take(self):
        """Hand over ownership. Only the first caller gets the receiver."""
        with self._state.lock:
            if self._state.taken:
                raise ChannelClosed("Receiver has already been handed over")
            self._state.taken = True
        return self

    def drain(self):
        """Yield everything queued right now, oldest first, without blocking."""
        while True:
            try:
                yield self._state.queue.get_nowait()
            except queue.Empty:
                return

    def close(self):
        self._state.closed = True

    @property
    def closed(self):
        return self._state.closed


def channel():
    state = _State()
    return Sender(state), Receiver(state)
