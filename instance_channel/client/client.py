import socket
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from instance_channel.common.config import CONNECT_TIMEOUT, WRITE_TIMEOUT
from instance_channel.common.log import log


class MessageSender:
    """Fire-and-forget delivery of payloads to the server instance.

    Every payload travels on its own short-lived connection. Sends run on a
    single worker thread, so payloads leave in the order they were queued.
    No reply is read.
    """

    def __init__(self, node_id: str, connect_timeout=CONNECT_TIMEOUT, write_timeout=WRITE_TIMEOUT):
        self.node_id = node_id
        self.connect_timeout = connect_timeout
        self.write_timeout = write_timeout

        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()

    def send(self, addr, payload: bytes) -> Future:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix=f"sender-{self.node_id}"
                )
            return self._executor.submit(self.deliver, addr, payload)

    def deliver(self, addr, payload: bytes) -> bool:
        try:
            with socket.create_connection(addr, timeout=self.connect_timeout) as sock:
                sock.settimeout(self.write_timeout)
                sock.sendall(payload)
                sock.shutdown(socket.SHUT_WR)
        except OSError as e:
            log("client", self.node_id, "SEND_FAIL", level="WARN", addr=addr, error=e, size=len(payload))
            return False

        log("client", self.node_id, "SEND", level="DEBUG", addr=addr, size=len(payload))
        return True

    def shutdown(self, wait=True):
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)
