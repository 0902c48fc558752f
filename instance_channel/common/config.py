import os

BUFFER_SIZE = 4096
MAX_MESSAGE_SIZE = 65536

# single host only
HOST = "127.0.0.1"

# Wire commands
CHECK = "--check"
REQUEST = "--request"
# reply to CHECK
ALIVE = "[ALIVE]"

# Lock descriptor: <lock dir>/<app name><suffix>
LOCK_SUFFIX = "rc"
LOCK_DIR_ENV = "INSTANCE_CHANNEL_LOCK_DIR"

# Timing (seconds)
POLL_INTERVAL = 0.1
CONNECT_TIMEOUT = float(os.getenv("INSTANCE_CHANNEL_CONNECT_TIMEOUT", "0.5"))
REPLY_TIMEOUT = 1.0
WRITE_TIMEOUT = 1.0
SESSION_TIMEOUT = 2.0
ACCEPT_TICK = 0.1
JOIN_TIMEOUT = 2.0

# create-exclusive rounds before overwriting the descriptor
ELECTION_ATTEMPTS = 3

# Console log
LOG_LEVEL = os.getenv("INSTANCE_CHANNEL_LOG_LEVEL", "INFO").upper()

# Syslog (RFC5424 over UDP)
SYSLOG_ENABLED = os.getenv("INSTANCE_CHANNEL_SYSLOG") == "1"
SYSLOG_HOST = os.getenv("INSTANCE_CHANNEL_SYSLOG_HOST", "127.0.0.1")
SYSLOG_PORT = int(os.getenv("INSTANCE_CHANNEL_SYSLOG_PORT", "5514"))
# local0
SYSLOG_FACILITY = 16
