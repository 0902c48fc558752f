import socket
import threading
from typing import Callable, Optional, Set

from instance_channel.common.config import ACCEPT_TICK, HOST, JOIN_TIMEOUT, SESSION_TIMEOUT
from instance_channel.common.events import Event
from instance_channel.common.log import log
from instance_channel.server.session import Session


def open_listener(host=HOST, backlog=socket.SOMAXCONN) -> socket.socket:
    """Listening TCP socket on an ephemeral port of host."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.bind((host, 0))
        sock.listen(backlog)
    except OSError:
        sock.close()
        raise
    return sock


class ServerEndpoint:
    """
    Accept loop of the server instance.

    Owns the listening socket it is given. Each accepted connection is
    handed to a Session running on its own thread; sessions only share
    the emit callback.
    """

    def __init__(self, sock, emit: Callable[[Event], None], node_id: str, session_timeout=SESSION_TIMEOUT):
        self.sock = sock
        self.address = sock.getsockname()[:2]
        self.emit = emit
        self.node_id = node_id
        self.session_timeout = session_timeout

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._sessions: Set[Session] = set()
        self._sessions_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        # allow the stop flag to be seen even when nobody connects
        self.sock.settimeout(ACCEPT_TICK)
        self._thread = threading.Thread(
            target=self.serve_forever, name=f"endpoint-{self.node_id}", daemon=True
        )
        self._thread.start()

    def serve_forever(self):
        log("server", self.node_id, "LISTEN", level="OK", addr=self.address)

        while not self._stop.is_set():
            try:
                conn, peer = self.sock.accept()
            except (socket.timeout, TimeoutError):
                continue
            except OSError as e:
                if not self._stop.is_set():
                    log("server", self.node_id, "ACCEPT_FAIL", level="ERROR", error=e)
                break

            self._spawn(conn, peer)

    def _spawn(self, conn, peer):
        session = Session(conn, peer, self.emit, self.node_id, timeout=self.session_timeout)

        def run():
            try:
                session.run()
            finally:
                with self._sessions_lock:
                    self._sessions.discard(session)

        with self._sessions_lock:
            self._sessions.add(session)
        threading.Thread(target=run, name=f"session-{self.node_id}", daemon=True).start()

    def stop(self):
        self._stop.set()
        try:
            self.sock.close()
        except OSError:
            pass

        with self._sessions_lock:
            sessions = list(self._sessions)
        for session in sessions:
            session.abort()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(JOIN_TIMEOUT)
        self._thread = None

        log("server", self.node_id, "LISTEN_CLOSED", level="DEBUG", addr=self.address)
