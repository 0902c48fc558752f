import socket
from typing import Callable, Optional

from instance_channel.common.config import ALIVE, CHECK, REQUEST, SESSION_TIMEOUT
from instance_channel.common.events import Event, PlainMessage, Request
from instance_channel.common.log import log
from instance_channel.common.messages import FrameTooLarge, Message, decode, recv_frame


class Session:
    """One accepted connection carrying exactly one message."""

    def __init__(self, conn, peer, emit: Callable[[Event], None], node_id: str, timeout=SESSION_TIMEOUT):
        self.conn = conn
        self.peer = peer
        self.emit = emit
        self.node_id = node_id
        self.timeout = timeout
        self._aborted = False

    def run(self):
        try:
            try:
                data = recv_frame(self.conn, self.timeout)
            except (socket.timeout, TimeoutError):
                log("server", self.node_id, "SESSION_PARTIAL_DROPPED", level="WARN", addr=self.peer)
                return
            except FrameTooLarge as e:
                log("server", self.node_id, "SESSION_OVERSIZE_DROPPED", level="WARN", addr=self.peer, error=e)
                return
            except OSError as e:
                if not self._aborted:
                    log("server", self.node_id, "SESSION_ABORTED", level="WARN", addr=self.peer, error=e)
                return

            # shutdown during the read looks like EOF; the frame is incomplete
            if self._aborted:
                return

            # liveness probes connect and close without sending anything
            if not data:
                return

            message = decode(data)
            log("server", self.node_id, "SESSION_MESSAGE", level="DEBUG", addr=self.peer, command=message.command)

            reply = self.dispatch(message)
            if reply is not None:
                self.conn.settimeout(self.timeout)
                self.conn.sendall(reply.encode())
        except OSError as e:
            log("server", self.node_id, "SESSION_REPLY_FAIL", level="WARN", addr=self.peer, error=e)
        finally:
            self.conn.close()

    def dispatch(self, message: Message) -> Optional[str]:
        if message.command == CHECK:
            return ALIVE

        if message.command == REQUEST:
            self.emit(Request(message.args))
        else:
            self.emit(PlainMessage(message.raw))
        return None

    def abort(self):
        self._aborted = True
        try:
            self.conn.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
