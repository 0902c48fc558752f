import socket

from instance_channel.common.config import ALIVE, CHECK, CONNECT_TIMEOUT, REPLY_TIMEOUT
from instance_channel.common.messages import FrameTooLarge, recv_frame


def check_alive(addr, connect_timeout=CONNECT_TIMEOUT, reply_timeout=REPLY_TIMEOUT) -> bool:
    """Send --check to addr and report whether it answered [ALIVE]."""
    try:
        with socket.create_connection(addr, timeout=connect_timeout) as sock:
            sock.settimeout(reply_timeout)
            sock.sendall(CHECK.encode())
            sock.shutdown(socket.SHUT_WR)
            reply = recv_frame(sock, reply_timeout, limit=len(ALIVE))
    except (OSError, FrameTooLarge):
        return False

    return reply == ALIVE.encode()
