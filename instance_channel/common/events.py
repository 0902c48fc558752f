from dataclasses import dataclass, field
from enum import Enum
from typing import List, Union


class Role(Enum):
    UNELECTED = "unelected"
    SERVER = "server"
    CLIENT = "client"


@dataclass(frozen=True)
class GotServerRole:
    pass


@dataclass(frozen=True)
class ServerRoleChanged:
    is_server: bool


@dataclass(frozen=True)
class ConnectionLost:
    pass


@dataclass
class Request:
    args: List[str] = field(default_factory=list)


@dataclass
class PlainMessage:
    text: str


Event = Union[GotServerRole, ServerRoleChanged, ConnectionLost, Request, PlainMessage]
