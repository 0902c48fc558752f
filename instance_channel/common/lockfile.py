"""
instance_channel.common.lockfile

The lock descriptor: a tiny key/value record naming the address and port of
the primary instance. It is the only state shared between processes.

File format (one key per line):

    port = 41873
    address = 127.0.0.1

Stores expose a narrow read/create/write/delete interface so the election
can run against a file or an in-memory record.
"""

from __future__ import annotations

import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

from instance_channel.common.config import LOCK_DIR_ENV, LOCK_SUFFIX


class DescriptorError(ValueError):
    """The descriptor exists but does not hold a usable address/port."""


@dataclass(frozen=True)
class LockDescriptor:
    address: str
    port: int

    @property
    def addr(self) -> Tuple[str, int]:
        return (self.address, self.port)

    def render(self) -> str:
        return f"port = {self.port}\naddress = {self.address}\n"

    @classmethod
    def parse(cls, text: str) -> "LockDescriptor":
        values = {}
        for line in text.splitlines():
            line = line.strip()
            # QSettings-style section headers and comments are tolerated
            if not line or line.startswith(("#", ";", "[")):
                continue
            key, sep, value = line.partition("=")
            if not sep:
                raise DescriptorError(f"Malformed line: {line!r}")
            values[key.strip().lower()] = value.strip()

        address = values.get("address", "")
        if not address:
            raise DescriptorError("Missing address")

        try:
            port = int(values.get("port", ""))
        except ValueError:
            raise DescriptorError(f"Invalid port: {values.get('port')!r}") from None
        if not 0 < port < 65536:
            raise DescriptorError(f"Port out of range: {port}")

        return cls(address=address, port=port)


def lock_path(app_name: str, directory: Union[str, Path, None] = None) -> Path:
    if directory is None:
        directory = os.getenv(LOCK_DIR_ENV) or tempfile.gettempdir()
    return Path(directory) / f"{app_name}{LOCK_SUFFIX}"


class LockStore:
    def read(self) -> Optional[LockDescriptor]:
        """Return the stored descriptor, or None if there is none.

        Raises DescriptorError when a record exists but cannot be parsed.
        """
        raise NotImplementedError

    def create(self, descriptor: LockDescriptor) -> bool:
        """Store descriptor only if none exists. Returns False if one does."""
        raise NotImplementedError

    def write(self, descriptor: LockDescriptor) -> None:
        raise NotImplementedError

    def delete(self, expected: Optional[LockDescriptor] = None) -> bool:
        """Remove the record.

        With expected set, remove it only while it still equals expected, so
        a record published in the meantime by another process survives.
        """
        raise NotImplementedError


class FileLockStore(LockStore):
    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def __repr__(self):
        return f"FileLockStore({str(self.path)!r})"

    def read(self) -> Optional[LockDescriptor]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError:
            raise DescriptorError(f"Not a text record: {self.path}") from None
        return LockDescriptor.parse(text)

    def _write_temp(self, descriptor: LockDescriptor) -> str:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(descriptor.render())
        return tmp

    def create(self, descriptor: LockDescriptor) -> bool:
        # the full record is written first, then linked into place: readers
        # never see a half-written file and only one creator can win
        tmp = self._write_temp(descriptor)
        try:
            os.link(tmp, self.path)
        except FileExistsError:
            return False
        finally:
            os.unlink(tmp)
        return True

    def write(self, descriptor: LockDescriptor) -> None:
        tmp = self._write_temp(descriptor)
        try:
            os.replace(tmp, self.path)
        except OSError:
            os.unlink(tmp)
            raise

    def delete(self, expected: Optional[LockDescriptor] = None) -> bool:
        if expected is not None:
            try:
                current = self.read()
            except DescriptorError:
                return False
            if current != expected:
                return False
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        return True


class MemoryLockStore(LockStore):
    def __init__(self, descriptor: Optional[LockDescriptor] = None):
        self._descriptor = descriptor
        self._lock = threading.Lock()

    def read(self) -> Optional[LockDescriptor]:
        with self._lock:
            return self._descriptor

    def create(self, descriptor: LockDescriptor) -> bool:
        with self._lock:
            if self._descriptor is not None:
                return False
            self._descriptor = descriptor
            return True

    def write(self, descriptor: LockDescriptor) -> None:
        with self._lock:
            self._descriptor = descriptor

    def delete(self, expected: Optional[LockDescriptor] = None) -> bool:
        with self._lock:
            if self._descriptor is None:
                return False
            if expected is not None and self._descriptor != expected:
                return False
            self._descriptor = None
            return True
