"""Small reader for sysfs-style attribute files that are re-read in place."""

from __future__ import annotations

import os

_BYTES_PER_READ = 50

_MESSAGES = {
    "open": "Failed to open file descriptor",
    "read": "Failed to read from file descriptor",
    "write": "Failed to write to file descriptor",
}


class FdError(Exception):
    """A file descriptor could not be opened, read or written.

    ``kind`` is one of ``"open"``, ``"read"`` or ``"write"``.
    """

    def __init__(self, kind: str) -> None:
        super().__init__(_MESSAGES[kind])
        self.kind = kind

    def __str__(self) -> str:
        return _MESSAGES[self.kind]


class Fd:
    """A read-only descriptor whose content is read from the start each time."""

    def __init__(self, path: str) -> None:
        self.path = path
        try:
            self._fd = os.open(path, os.O_RDONLY)
        except (OSError, ValueError) as err:
            raise FdError("open") from err

    def read(self, min_len: int) -> str:
        """Read at least ``min_len`` bytes, or up to end of file, and strip whitespace.

        Data is read in blocks of 50 bytes; a short block ends the read.
        """
        if self._fd < 0:
            raise FdError("read")
        data = bytearray()
        blocks = 0
        try:
            os.lseek(self._fd, 0, os.SEEK_SET)
            while blocks * _BYTES_PER_READ < min_len:
                chunk = os.read(self._fd, _BYTES_PER_READ)
                data += chunk
                if len(chunk) < _BYTES_PER_READ:
                    break
                blocks += 1
        except OSError as err:
            raise FdError("read") from err
        return data.decode("utf-8", errors="replace").strip()

    def close(self) -> None:
        if self._fd >= 0:
            os.close(self._fd)
            self._fd = -1

    def __enter__(self) -> Fd:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def __del__(self) -> None:
        if getattr(self, "_fd", -1) >= 0:
            try:
                os.close(self._fd)
            except OSError:
                pass
            self._fd = -1