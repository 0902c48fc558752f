import socket
import threading
from typing import Callable, Optional

from instance_channel.common.config import CONNECT_TIMEOUT, JOIN_TIMEOUT, POLL_INTERVAL
from instance_channel.common.log import log
from instance_channel.common.syslog import LOG_WARN


class LivenessMonitor:
    def __init__(
        self,
        server_addr,
        on_lost: Callable[[], None],
        node_id: str,
        interval=POLL_INTERVAL,
        timeout=CONNECT_TIMEOUT,
    ):
        """
        Periodic reachability probe of the server instance.

        Every interval a fresh connection to server_addr is attempted and
        closed without any I/O. The first failed attempt calls on_lost once
        and the monitor stops; only a new election starts another one.
        """
        self.server_addr = server_addr
        self.on_lost = on_lost
        self.node_id = node_id
        self.interval = interval
        self.timeout = timeout

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._sock: Optional[socket.socket] = None
        self._sock_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        self._stop.clear()
        self._thread = threading.Thread(
            target=self.run, name=f"liveness-{self.node_id}", daemon=True
        )
        self._thread.start()

    def run(self):
        log("client", self.node_id, "LIVENESS_START", level="DEBUG", addr=self.server_addr, interval=self.interval)

        while not self._stop.wait(self.interval):
            if self.tick():
                continue

            # stop() closes the in-flight probe socket; that is not a loss
            if self._stop.is_set():
                break

            LOG_WARN(
                "CONNECTION_LOST",
                node_id=self.node_id,
                event="CONNECTION_LOST",
                role="client",
                addr=self.server_addr,
            )
            log("client", self.node_id, "CONNECTION_LOST", level="WARN", addr=self.server_addr)
            self.on_lost()
            return

    def tick(self) -> bool:
        """One probe. True if the server accepted a connection."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        with self._sock_lock:
            if self._stop.is_set():
                sock.close()
                return True
            self._sock = sock

        try:
            sock.settimeout(self.timeout)
            sock.connect(self.server_addr)
            return True
        except OSError as e:
            log("client", self.node_id, "PROBE_FAIL", level="DEBUG", addr=self.server_addr, error=e)
            return False
        finally:
            with self._sock_lock:
                self._sock = None
            sock.close()

    def stop(self):
        self._stop.set()

        # unblock a pending connect
        with self._sock_lock:
            if self._sock is not None:
                try:
                    self._sock.close()
                except OSError:
                    pass

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(JOIN_TIMEOUT)
        self._thread = None
