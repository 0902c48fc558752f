"""Single-instance coordination for desktop applications.

The first launch of an application becomes the server; later launches find
it through a lock descriptor in the temp directory and forward their
command-line requests to it over a local TCP connection.
"""

__version__ = "0.3.0"

from instance_channel.channel import InterProcessChannel
from instance_channel.common.events import (
    ConnectionLost,
    Event,
    GotServerRole,
    PlainMessage,
    Request,
    Role,
    ServerRoleChanged,
)
from instance_channel.common.lockfile import (
    DescriptorError,
    FileLockStore,
    LockDescriptor,
    LockStore,
    MemoryLockStore,
    lock_path,
)

__all__ = [
    "InterProcessChannel",
    "Role",
    "Event",
    "GotServerRole",
    "ServerRoleChanged",
    "ConnectionLost",
    "Request",
    "PlainMessage",
    "LockDescriptor",
    "LockStore",
    "FileLockStore",
    "MemoryLockStore",
    "DescriptorError",
    "lock_path",
]
