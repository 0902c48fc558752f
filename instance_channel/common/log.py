import os
import sys
import time

from instance_channel.common.config import LOG_LEVEL

NO_COLOR = os.getenv("NO_COLOR") == "1"

RESET = "\033[0m"

# level -> (rank, colour); OK ranks with INFO but prints green
LEVELS = {
    "DEBUG": (10, "\033[90m"),
    "INFO": (20, "\033[36m"),
    "OK": (20, "\033[32m"),
    "WARN": (30, "\033[33m"),
    "ERROR": (40, "\033[31m"),
}
OFF = 100


def _rank(level: str) -> int:
    if level == "OFF":
        return OFF
    return LEVELS.get(level, LEVELS["INFO"])[0]


def enabled(level: str) -> bool:
    return _rank(level) >= _rank(LOG_LEVEL)


def format_line(role: str, node_id: str, event: str, level: str, fields: dict) -> str:
    line = f"ts={time.time():.3f} role={role} id={node_id} lvl={level} event={event}"
    for key in sorted(fields):
        value = fields[key]
        if isinstance(value, tuple):
            value = f"{value[0]}:{value[1]}"
        line += f" {key}={value}"
    return line


def log(role: str, node_id: str, event: str, level: str = "INFO", **fields):
    if not enabled(level):
        return

    line = format_line(role, node_id, event, level, fields)
    if not NO_COLOR and sys.stdout.isatty():
        line = f"{LEVELS.get(level, LEVELS['INFO'])[1]}{line}{RESET}"
    print(line, flush=True)
