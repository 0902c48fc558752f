import socket
from typing import Optional

from instance_channel.client.client_probe import check_alive
from instance_channel.common.config import CONNECT_TIMEOUT, ELECTION_ATTEMPTS, HOST, REPLY_TIMEOUT
from instance_channel.common.events import Role
from instance_channel.common.lockfile import DescriptorError, LockDescriptor, LockStore
from instance_channel.common.log import log
from instance_channel.common.syslog import LOG_INFO, LOG_WARN
from instance_channel.server.endpoint import open_listener


class RoleElector:
    def __init__(
        self,
        store: LockStore,
        node_id: str,
        host=HOST,
        connect_timeout=CONNECT_TIMEOUT,
        reply_timeout=REPLY_TIMEOUT,
        attempts=ELECTION_ATTEMPTS,
    ):
        """
        Decides whether this instance serves or forwards.

        After elect():
          - role           Role.SERVER or Role.CLIENT
          - server_addr    (host, port) of the server instance
          - listener       listening socket to serve on (server only)
          - descriptor     the record this instance published (server only)

        The caller stops any activity of a previous election first and
        starts the role's activity afterwards.
        """
        self.store = store
        self.node_id = node_id
        self.host = host
        self.connect_timeout = connect_timeout
        self.reply_timeout = reply_timeout
        self.attempts = attempts

        self.role = Role.UNELECTED
        self.server_addr = None
        self.listener: Optional[socket.socket] = None
        self.descriptor: Optional[LockDescriptor] = None

    def elect(self) -> Role:
        self.release()

        # opened up front so a server is ready whatever the outcome
        listener = open_listener(self.host)
        try:
            return self._elect(listener)
        except BaseException:
            listener.close()
            raise

    def _elect(self, listener) -> Role:
        host, port = listener.getsockname()[:2]
        mine = LockDescriptor(address=host, port=port)

        for attempt in range(1, self.attempts + 1):
            current = self._read()

            if current is not None:
                if check_alive(current.addr, self.connect_timeout, self.reply_timeout):
                    listener.close()
                    return self._become_client(current)

                self.store.delete(expected=current)
                LOG_WARN(
                    "STALE_DESCRIPTOR",
                    node_id=self.node_id,
                    event="STALE_DESCRIPTOR",
                    addr=current.addr,
                )
                log("election", self.node_id, "STALE_DESCRIPTOR", level="WARN", addr=current.addr)

            if self.store.create(mine):
                return self._become_server(listener, mine)

            # another instance published between our read and our create
            log("election", self.node_id, "ELECTION_RACE_LOST", level="WARN", attempt=attempt)

        # nobody we raced against answered the handshake
        self.store.write(mine)
        log("election", self.node_id, "DESCRIPTOR_OVERWRITTEN", level="WARN", addr=mine.addr)
        return self._become_server(listener, mine)

    def _read(self) -> Optional[LockDescriptor]:
        try:
            return self.store.read()
        except DescriptorError as e:
            log("election", self.node_id, "GARBLED_DESCRIPTOR", level="WARN", error=e)
            self.store.delete()
            return None

    def _become_server(self, listener, descriptor: LockDescriptor) -> Role:
        self.role = Role.SERVER
        self.listener = listener
        self.descriptor = descriptor
        self.server_addr = descriptor.addr

        LOG_INFO("GOT_SERVER_ROLE", node_id=self.node_id, event="GOT_SERVER_ROLE", role="server", addr=descriptor.addr)
        log("election", self.node_id, "GOT_SERVER_ROLE", level="OK", addr=descriptor.addr)
        return self.role

    def _become_client(self, descriptor: LockDescriptor) -> Role:
        self.role = Role.CLIENT
        self.server_addr = descriptor.addr

        LOG_INFO("GOT_CLIENT_ROLE", node_id=self.node_id, event="GOT_CLIENT_ROLE", role="client", addr=descriptor.addr)
        log("election", self.node_id, "GOT_CLIENT_ROLE", level="OK", addr=descriptor.addr)
        return self.role

    def release(self):
        """Drop the outcome of the last elect(): close the listener and
        withdraw our descriptor if we published one."""
        if self.listener is not None:
            self.listener.close()
            self.listener = None
        if self.descriptor is not None:
            self.store.delete(expected=self.descriptor)
            self.descriptor = None
        self.role = Role.UNELECTED
        self.server_addr = None
