"""Access to the embedded controller through its command and data ports."""

from __future__ import annotations

import os
import sys
import time

EC_SC_REG = 0x66
EC_DATA_REG = 0x62
EC_READ_CMD = 0x80
EC_WRITE_CMD = 0x81
EC_SC_IBF_INDEX = 1
EC_SC_OBF_INDEX = 0

_MAX_TRIES = 1000
_POLL_INTERVAL = 0.001


class PortIO:
    """Byte-wide I/O port access through a port device file such as ``/dev/port``."""

    def __init__(self, path: str = "/dev/port") -> None:
        self.path = path
        self._fd = os.open(path, os.O_RDWR)

    def inb(self, addr: int) -> int:
        data = os.pread(self._fd, 1, addr)
        if not data:
            raise OSError(f"no data at port {addr:#x}")
        return data[0]

    def outb(self, addr: int, byte: int) -> None:
        os.pwrite(self._fd, bytes([byte]), addr)

    def __del__(self) -> None:
        if getattr(self, "_fd", -1) >= 0:
            try:
                os.close(self._fd)
            except OSError:
                pass
            self._fd = -1


class EcAccessor:
    """Reads and writes embedded controller registers using the ACPI EC handshake."""

    def __init__(self, ports=None) -> None:
        self.ports = PortIO() if ports is None else ports

    def _poll_ready(self, addr: int, bit: int, value: bool) -> None:
        for _ in range(_MAX_TRIES):
            status = self.ports.inb(addr)
            if (status >> bit) & 1 == int(value):
                return
            time.sleep(_POLL_INTERVAL)
        print("EC poll ready timeout", file=sys.stderr)

    def read_byte(self, addr: int) -> int:
        return self.cmd_read(EC_READ_CMD, addr)

    def write_byte(self, addr: int, byte: int) -> None:
        self.cmd_write(EC_WRITE_CMD, addr, byte)

    def cmd_read(self, cmd: int, addr: int) -> int:
        self._poll_ready(EC_SC_REG, EC_SC_IBF_INDEX, False)
        self.ports.outb(EC_SC_REG, cmd)
        self._poll_ready(EC_SC_REG, EC_SC_IBF_INDEX, False)
        self.ports.outb(EC_DATA_REG, addr)
        self._poll_ready(EC_SC_REG, EC_SC_OBF_INDEX, True)
        return self.ports.inb(EC_DATA_REG)

    def cmd_write(self, cmd: int, addr: int, byte: int) -> None:
        self._poll_ready(EC_SC_REG, EC_SC_IBF_INDEX, False)
        self.ports.outb(EC_SC_REG, cmd)
        self._poll_ready(EC_SC_REG, EC_SC_IBF_INDEX, False)
        self.ports.outb(EC_DATA_REG, addr)
        self._poll_ready(EC_SC_REG, EC_SC_IBF_INDEX, False)
        self.ports.outb(EC_DATA_REG, byte)
        self._poll_ready(EC_SC_REG, EC_SC_IBF_INDEX, False)