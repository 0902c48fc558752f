"""
instance_channel.channel

InterProcessChannel lets several launches of one application find each
other on the local host. The first launch becomes the server and receives
messages; later launches become clients and forward to it.

    channel = InterProcessChannel("myapp")
    if channel.wait_for_role(2.0) is Role.CLIENT:
        channel.request(*sys.argv[1:])
    else:
        while True:
            event = channel.next_event(timeout=0.5)
            ...

Networking (election, accepting, polling, sending) happens on background
threads. Results reach the application as events on a queue that the
application drains from its own thread with next_event() or
process_events(); registered listeners are called there too.
"""

from __future__ import annotations

import itertools
import os
import queue
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Callable, List, Optional, Union

from instance_channel.client.client import MessageSender
from instance_channel.client.liveness import LivenessMonitor
from instance_channel.common.config import HOST
from instance_channel.common.events import (
    ConnectionLost,
    Event,
    GotServerRole,
    Role,
    ServerRoleChanged,
)
from instance_channel.common.lockfile import FileLockStore, LockStore, lock_path
from instance_channel.common.log import log
from instance_channel.common.messages import encode, request_line
from instance_channel.common.syslog import LOG_ERROR, LOG_INFO
from instance_channel.server.election import RoleElector
from instance_channel.server.endpoint import ServerEndpoint

Listener = Callable[[Event], None]

_instances = itertools.count(1)


class InterProcessChannel:
    def __init__(
        self,
        app_name: str,
        store: Optional[LockStore] = None,
        lock_dir: Union[str, Path, None] = None,
        host: str = HOST,
        autostart: bool = True,
    ):
        if not app_name:
            raise ValueError("app_name must not be empty")

        self.app_name = app_name
        self.host = host
        self.node_id = f"{app_name}-{os.getpid()}-{next(_instances)}"
        self.store = store if store is not None else FileLockStore(lock_path(app_name, lock_dir))

        self._lock = threading.RLock()
        self._role = Role.UNELECTED
        self._server_addr = None
        self._elected = threading.Event()
        # bumped by close()/reconnect(); an election finishing under an
        # older generation gives up its result
        self._generation = 0

        self._elector: Optional[RoleElector] = None
        self._endpoint: Optional[ServerEndpoint] = None
        self._monitor: Optional[LivenessMonitor] = None
        self._sender = MessageSender(self.node_id)

        self._events: "queue.Queue[Event]" = queue.Queue()
        self._listeners: List[Listener] = []
        self._buffer = ""

        if autostart:
            self.reconnect()

    def __repr__(self):
        return f"<InterProcessChannel {self.node_id} role={self._role.value}>"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ------------------------------------------------------------------
    # role
    # ------------------------------------------------------------------
    @property
    def role(self) -> Role:
        return self._role

    def is_server(self) -> bool:
        return self._role is Role.SERVER

    @property
    def server_address(self):
        """(host, port) of the server instance, or None before election."""
        return self._server_addr

    def wait_for_role(self, timeout: Optional[float] = None) -> Role:
        """Block until the running election finishes (or timeout)."""
        self._elected.wait(timeout)
        return self._role

    def reconnect(self):
        """Run a new election on a background thread.

        Typically called after ConnectionLost. A server gives up its socket
        and its descriptor first.
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._stop_activity()
            self._elected.clear()

            threading.Thread(
                target=self._elect,
                args=(generation,),
                name=f"election-{self.node_id}",
                daemon=True,
            ).start()

    def close(self):
        with self._lock:
            self._generation += 1
            was = self._role
            self._stop_activity()
            self._sender.shutdown(wait=False)
            # nobody waits on an election that will never finish
            self._elected.set()

        if was is not Role.UNELECTED:
            LOG_INFO("CHANNEL_CLOSED", node_id=self.node_id, event="CHANNEL_CLOSED", role=was.value)
            log(was.value, self.node_id, "CHANNEL_CLOSED", level="INFO")

    def _stop_activity(self):
        if self._endpoint is not None:
            self._endpoint.stop()
            self._endpoint = None
        if self._monitor is not None:
            self._monitor.stop()
            self._monitor = None
        if self._elector is not None:
            # closes the listener and removes our descriptor, if any
            self._elector.release()
            self._elector = None
        self._role = Role.UNELECTED
        self._server_addr = None

    def _elect(self, generation: int):
        elector = RoleElector(self.store, self.node_id, host=self.host)

        try:
            role = elector.elect()
        except Exception as e:
            LOG_ERROR("ELECTION_FAILED", node_id=self.node_id, event="ELECTION_FAILED", error=e)
            log("election", self.node_id, "ELECTION_FAILED", level="ERROR", error=e)
            with self._lock:
                if generation == self._generation:
                    self._elected.set()
            return

        with self._lock:
            if generation != self._generation:
                elector.release()
                return

            self._elector = elector
            self._role = role
            self._server_addr = elector.server_addr

            if role is Role.SERVER:
                self._endpoint = ServerEndpoint(elector.listener, self._emit, self.node_id)
                self._endpoint.start()
                self._emit(GotServerRole())
                self._emit(ServerRoleChanged(True))
            else:
                self._monitor = LivenessMonitor(elector.server_addr, self._on_lost, self.node_id)
                self._monitor.start()
                self._emit(ServerRoleChanged(False))

            self._elected.set()

    def _on_lost(self):
        self._emit(ConnectionLost())

    # ------------------------------------------------------------------
    # sending
    # ------------------------------------------------------------------
    def message_buffer(self) -> str:
        return self._buffer

    def set_message_buffer(self, text: str):
        self._buffer = text

    def send_message(self, payload: Union[str, bytes, None] = None) -> Optional[Future]:
        """Send payload to the server instance without waiting for it.

        Without payload the message buffer is sent and cleared. Returns a
        Future resolving to True once the payload is written, or None when
        nothing is sent: empty payload, this instance is the server, or no
        election has finished.
        """
        if payload is None:
            payload, self._buffer = self._buffer, ""

        data = encode(payload)
        if not data:
            log(self._role.value, self.node_id, "EMPTY_MESSAGE_IGNORED", level="DEBUG")
            return None

        with self._lock:
            role, addr = self._role, self._server_addr

        if role is not Role.CLIENT:
            log(role.value, self.node_id, "SEND_SKIPPED", level="DEBUG", size=len(data))
            return None

        return self._sender.send(addr, data)

    def request(self, *args: str) -> Optional[Future]:
        """Forward arguments as a --request message."""
        return self.send_message(request_line(args))

    # ------------------------------------------------------------------
    # events
    # ------------------------------------------------------------------
    def _emit(self, event: Event):
        log(self._role.value, self.node_id, "EVENT", level="DEBUG", type=type(event).__name__)
        self._events.put(event)

    def add_listener(self, listener: Listener):
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener):
        self._listeners.remove(listener)

    def next_event(self, timeout: Optional[float] = None) -> Optional[Event]:
        """Pop one event, hand it to the listeners and return it.

        Returns None if nothing arrived within timeout.
        """
        try:
            event = self._events.get(timeout=timeout)
        except queue.Empty:
            return None

        for listener in list(self._listeners):
            listener(event)
        return event

    def process_events(self) -> List[Event]:
        """Dispatch every pending event without blocking."""
        events = []
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                return events

            for listener in list(self._listeners):
                listener(event)
            events.append(event)
