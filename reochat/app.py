"""The tkinter front end.

All widgets and all shell state belong to the tkinter thread. Network work
runs on the async runtime and comes back as events: single results through
`events`, bridged room messages through the shell's subscription. Both are
polled with `after`.
"""
import logging as log
import queue
import tkinter as tk
from tkinter import scrolledtext

from reochat import ReoChatError
from reochat.auth import authenticate
from reochat.channel import channel
from reochat.dispatch import send_text
from reochat.runtime import AsyncRuntime
from reochat.shell import (
    ComposerTyped, LoggedIn, LoginFailed, ScrollToEnd, SendFailure, SendText,
    Shell, StartSync, Status, Submit,
)
from reochat.sync import SyncEngine

BACKGROUND = "#000000"
FOREGROUND = "#ffffff"
PRIMARY = "#2c6bee"


class ChatWindow(object):
    """Scrollback, a status line and a composer row."""

    def __init__(self, root, on_typed, on_submit):
        self.root = root
        self.root.geometry("640x720")
        self.root.configure(bg=BACKGROUND, padx=16, pady=16)
        self.rendered = 0

        self.status = tk.Label(root, anchor="w", bg=BACKGROUND, fg=FOREGROUND)
        self.status.pack(side=tk.TOP, fill=tk.X)

        composer = tk.Frame(root, bg=BACKGROUND)
        composer.pack(side=tk.BOTTOM, fill=tk.X, pady=(16, 0))

        self.compose_var = tk.StringVar()
        self.compose_var.trace_add(
            "write", lambda *_: on_typed(self.compose_var.get())
        )
        self.entry = tk.Entry(
            composer, textvariable=self.compose_var,
            bg=BACKGROUND, fg=FOREGROUND, insertbackground=FOREGROUND,
        )
        self.entry.pack(side=tk.LEFT, fill=tk.X, expand=True, ipady=8, padx=(0, 8))
        self.entry.bind("<Return>", lambda _: on_submit())
        self.entry.focus_set()

        self.send = tk.Button(
            composer, text="➤", command=on_submit,
            bg=PRIMARY, fg=FOREGROUND, relief=tk.FLAT, padx=14, pady=8,
        )
        self.send.pack(side=tk.RIGHT)

        self.scrollback = scrolledtext.ScrolledText(
            root, wrap=tk.WORD, state=tk.DISABLED, borderwidth=0,
            bg=BACKGROUND, fg=FOREGROUND,
        )
        self.scrollback.tag_configure("time", font=("TkDefaultFont", 8))
        self.scrollback.pack(side=tk.BOTTOM, fill=tk.BOTH, expand=True)

    def render(self, view):
        self.root.title(view.title)
        self.status.configure(text=view.status)

        # scrollback is append-only
        new = view.messages[self.rendered:]
        if new:
            self.scrollback.configure(state=tk.NORMAL)
            for msg in new:
                self.scrollback.insert(tk.END, msg.sender + "  ")
                self.scrollback.insert(tk.END, msg.timestamp.strftime("%H:%M"), "time")
                self.scrollback.insert(tk.END, "\n%s\n\n" % msg.contents)
            self.scrollback.configure(state=tk.DISABLED)
            self.rendered = len(view.messages)

        if self.compose_var.get() != view.compose_value:
            self.compose_var.set(view.compose_value)
            self.entry.icursor(tk.END)

    def snap_to_end(self):
        self.scrollback.see(tk.END)


class ReoChatApp(object):
    POLL_MS = 50

    def __init__(self, config, policy=None):
        self.config = config
        self.policy = policy
        self.events = queue.Queue()
        self.sender, receiver = channel()
        self.shell = Shell(config.user_id, config.room_id, receiver)
        self.runtime = AsyncRuntime()
        self.subscriptions = {}
        self.engine = None

        self.root = tk.Tk()
        self.root.protocol("WM_DELETE_WINDOW", self.quit)
        self.window = ChatWindow(
            self.root,
            on_typed=lambda text: self.post(ComposerTyped(text)),
            on_submit=lambda: self.post(Submit()),
        )

    def post(self, event):
        """Queue an event for the UI thread. Safe from any thread."""
        self.events.put(event)

    def subscribe(self, subscription):
        if subscription.key not in self.subscriptions:
            self.subscriptions[subscription.key] = subscription

    def run(self):
        """Show the window until it is closed.

        Returns:
            bool: False if login failed.
        """
        self.runtime.start()
        self.runtime.wait_ready()
        self.subscribe(self.shell.subscription())
        self.runtime.submit(self.login())

        self.window.render(self.shell.view())
        self.root.after(self.POLL_MS, self.poll)
        self.root.mainloop()
        return self.shell.status != Status.FAILED

    def quit(self):
        log.info("Shutting down.")
        for subscription in self.subscriptions.values():
            subscription.close()
        if self.engine:
            self.engine.stop()
        client = self.shell.client

        async def close_client():
            if client is not None:
                await client.close()

        self.runtime.shutdown(cleanup=close_client)
        self.root.destroy()

    def poll(self):
        snap = False
        for event in self._pending():
            for command in self.shell.update(event):
                if isinstance(command, ScrollToEnd):
                    snap = True
                else:
                    self.execute(command)
        self.window.render(self.shell.view())
        if snap:
            self.window.snap_to_end()
        self.root.after(self.POLL_MS, self.poll)

    def _pending(self):
        while True:
            try:
                yield self.events.get_nowait()
            except queue.Empty:
                break
        for subscription in list(self.subscriptions.values()):
            for event in subscription:
                yield event

    def execute(self, command):
        if isinstance(command, StartSync):
            self.engine = SyncEngine(
                command.client, self.config.session_file, self.sender, self.policy
            )
            self.runtime.submit(
                self.engine.run(command.sync_token), on_done=self.sync_done
            )
        elif isinstance(command, SendText):
            self.runtime.submit(self.send(self.shell.client, command.text))
        else:
            log.warning("Unknown command %r", command)

    async def login(self):
        try:
            client, sync_token = await authenticate(
                self.config.credentials, self.config.data_dir, self.policy
            )
        except ReoChatError as e:
            log.warning("Failed to login: %s", e.as_str())
            self.post(LoginFailed(e.as_str()))
            return
        except Exception as e:
            log.exception(e)
            self.post(LoginFailed(repr(e)))
            return
        self.post(LoggedIn(client, sync_token))

    async def send(self, client, text):
        try:
            await send_text(client, self.config.room_id, text)
        except ReoChatError as e:
            log.warning("Failed to send message: %s", e.as_str())
            self.post(SendFailure(text, e.as_str()))
        except Exception as e:
            log.exception(e)
            self.post(SendFailure(text, repr(e)))

    def sync_done(self, future):
        if future.cancelled():
            return
        error = future.exception()
        if error:
            log.error("Sync engine terminated: %r", error)
        else:
            log.info("Sync engine finished.")
