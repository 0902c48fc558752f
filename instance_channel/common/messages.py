# --check             (client -> server, election handshake, reply [ALIVE])
# --request ARG...    (client -> server, forwarded launch arguments)
# <anything else>     (client -> server, plain application message)
#
# One message per TCP connection. The sender half-closes after writing,
# the receiver reads until EOF.
import shlex
import socket
import time
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Union

from instance_channel.common.config import BUFFER_SIZE, CHECK, MAX_MESSAGE_SIZE, REQUEST

COMMANDS = (CHECK, REQUEST)


def split_arguments(text: str) -> List[str]:
    """Split a line into tokens using POSIX shell quoting rules."""
    return shlex.split(text)


def request_line(args: Iterable[str]) -> str:
    return shlex.join([REQUEST, *args])


def encode(payload: Union[str, bytes, bytearray, None]) -> bytes:
    if payload is None:
        return b""
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return bytes(payload)


@dataclass
class Message:
    raw: str
    tokens: List[str] = field(default_factory=list)

    @property
    def command(self) -> Optional[str]:
        if self.tokens and self.tokens[0] in COMMANDS:
            return self.tokens[0]
        return None

    @property
    def args(self) -> List[str]:
        if self.command is None:
            return list(self.tokens)
        return self.tokens[1:]


def decode(data: bytes) -> Message:
    raw = data.decode("utf-8", errors="replace")
    try:
        tokens = split_arguments(raw)
    except ValueError:
        # unbalanced quotes: no command, delivered as plain text
        tokens = []
    return Message(raw=raw, tokens=tokens)


class FrameTooLarge(ValueError):
    pass


def recv_frame(sock, timeout: float, limit: int = MAX_MESSAGE_SIZE) -> bytes:
    """Read from sock until the peer half-closes.

    The whole read is bounded by timeout; socket.timeout is raised if EOF does
    not arrive in time and FrameTooLarge if the peer sends more than limit.
    """
    deadline = time.monotonic() + timeout
    buf = bytearray()

    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise socket.timeout("frame not terminated in time")
        sock.settimeout(remaining)

        chunk = sock.recv(BUFFER_SIZE)
        if not chunk:
            return bytes(buf)

        buf.extend(chunk)
        if len(buf) > limit:
            raise FrameTooLarge(f"frame exceeds {limit} bytes")
