from unittest import mock

import pytest

from clevofan.ec import EcAccessor, PortIO


class FakePorts:
    """Simulated EC: always ready, answers reads from a register map."""

    def __init__(self, registers=None, status=0x01):
        self.registers = dict(registers or {})
        self.status = status
        self.writes = []
        self._out = 0

    def inb(self, addr):
        if addr == 0x66:
            return self.status
        return self._out

    def outb(self, addr, byte):
        self.writes.append((addr, byte))
        if addr == 0x62 and len(self.writes) >= 2 and self.writes[-2] == (0x66, 0x80):
            self._out = self.registers.get(byte, 0)


def test_read_byte_returns_register_value():
    ports = FakePorts({0xD0: 0x12})
    ec = EcAccessor(ports)
    assert ec.read_byte(0xD0) == 0x12
    assert ports.writes == [(0x66, 0x80), (0x62, 0xD0)]


def test_cmd_read_unknown_register_is_zero():
    ports = FakePorts({0xD0: 0x12})
    assert EcAccessor(ports).cmd_read(0x80, 0xD1) == 0


def test_write_byte_sequence():
    ports = FakePorts()
    EcAccessor(ports).write_byte(0x10, 0x42)
    assert ports.writes == [(0x66, 0x81), (0x62, 0x10), (0x62, 0x42)]


def test_cmd_write_sequence():
    ports = FakePorts()
    EcAccessor(ports).cmd_write(0x99, 0x01, 0xFF)
    assert ports.writes == [(0x66, 0x99), (0x62, 0x01), (0x62, 0xFF)]


def test_poll_timeout_still_writes(capsys):
    ports = FakePorts(status=0x02)
    with mock.patch("clevofan.ec.time.sleep") as sleep:
        EcAccessor(ports).cmd_write(0x99, 0x02, 0x10)
    assert ports.writes == [(0x66, 0x99), (0x62, 0x02), (0x62, 0x10)]
    assert sleep.call_count == 4 * 1000
    assert "EC poll ready timeout" in capsys.readouterr().err


def test_port_io_round_trip(tmp_path):
    path = tmp_path / "port"
    path.write_bytes(bytes(256))
    ports = PortIO(str(path))
    ports.outb(0x62, 7)
    assert ports.inb(0x62) == 7
    assert ports.inb(0x66) == 0
    assert path.read_bytes()[0x62] == 7


def test_port_io_missing_device(tmp_path):
    with pytest.raises(FileNotFoundError):
        PortIO(str(tmp_path / "missing"))