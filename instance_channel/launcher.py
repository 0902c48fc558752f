import signal
import sys

from instance_channel.channel import InterProcessChannel
from instance_channel.common.config import (
    CONNECT_TIMEOUT,
    ELECTION_ATTEMPTS,
    REPLY_TIMEOUT,
    WRITE_TIMEOUT,
)
from instance_channel.common.events import PlainMessage, Request, Role

USAGE = "Usage: python -m instance_channel.launcher <APP_NAME> [ARG ...]"

# one handshake per election round, plus slack for the election thread
ELECTION_WAIT = ELECTION_ATTEMPTS * (CONNECT_TIMEOUT + REPLY_TIMEOUT) + 1.0


def _terminate(signum, frame):
    raise SystemExit(0)


def forward(channel: InterProcessChannel, args) -> int:
    future = channel.request(*args)
    ok = future is not None and future.result(timeout=CONNECT_TIMEOUT + WRITE_TIMEOUT + 1.0)
    if not ok:
        print(f"[{channel.node_id}] Could not forward {list(args)} to {channel.server_address}")
        return 2

    print(f"[{channel.node_id}] Forwarded {list(args)} to running instance at {channel.server_address}")
    return 0


def serve(channel: InterProcessChannel, args):
    host, port = channel.server_address
    print(f"[{channel.node_id}] Primary instance listening on {host}:{port}")
    if args:
        print(f"[{channel.node_id}] Opening {args}")

    while True:
        event = channel.next_event(timeout=0.5)

        if isinstance(event, Request):
            print(f"[{channel.node_id}] Request: {event.args}")
        elif isinstance(event, PlainMessage):
            print(f"[{channel.node_id}] Message: {event.text}")


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) < 1 or not argv[0]:
        print(USAGE)
        return 1

    app_name, args = argv[0], argv[1:]

    signal.signal(signal.SIGTERM, _terminate)

    channel = InterProcessChannel(app_name)
    try:
        role = channel.wait_for_role(ELECTION_WAIT)

        if role is Role.CLIENT:
            return forward(channel, args)

        if role is Role.SERVER:
            serve(channel, args)

        print(f"[{channel.node_id}] No role could be elected")
        return 2
    except KeyboardInterrupt:
        return 0
    finally:
        channel.close()


if __name__ == "__main__":
    sys.exit(main())
