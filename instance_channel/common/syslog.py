"""RFC5424 syslog datagrams for the channel's structured events.

Off unless INSTANCE_CHANNEL_SYSLOG=1. Delivery is best effort: a datagram
that cannot be sent is dropped.
"""

import socket
from datetime import datetime, timezone

from instance_channel.common import config

APP_NAME = "instance-channel"

SEVERITY = {"ERROR": 3, "WARN": 4, "INFO": 6}

_sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)


def _timestamp():
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _value(v):
    if v is None:
        return "-"
    if isinstance(v, tuple) and len(v) == 2:
        return f"{v[0]}:{v[1]}"
    return str(v)


def format_record(level: str, message: str, node_id: str, event=None, **fields) -> str:
    pri = config.SYSLOG_FACILITY * 8 + SEVERITY[level]

    parts = [
        f"event={_value(event)}",
        f"level={level}",
        f"node_id={node_id}",
        f'msg="{message}"',
    ]
    # role and addr first, the rest sorted
    for key in ("role", "addr"):
        if fields.get(key) is not None:
            parts.append(f"{key}={_value(fields.pop(key))}")
    parts.extend(f"{k}={_value(fields[k])}" for k in sorted(fields) if fields[k] is not None)

    return f"<{pri}>1 {_timestamp()} {node_id} {APP_NAME} - - - " + " ".join(parts)


def emit(level: str, message: str, **fields):
    if not config.SYSLOG_ENABLED:
        return

    record = format_record(level, message, **fields)
    try:
        _sock.sendto(
            record.encode("utf-8", errors="replace"),
            (config.SYSLOG_HOST, config.SYSLOG_PORT),
        )
    except OSError:
        pass


def LOG_INFO(message: str, **fields):
    emit("INFO", message, **fields)


def LOG_WARN(message: str, **fields):
    emit("WARN", message, **fields)


def LOG_ERROR(message: str, **fields):
    emit("ERROR", message, **fields)
