"""Intel processor readings from RAPL energy counters, thermal zones and psutil."""

from __future__ import annotations

import enum
import logging
import platform
import time
from typing import Optional, Sequence

import psutil

from .daemon_components import Component, ComponentError
from .fd import Fd, FdError
from .fields import Category, CpuStatus, Desc, Freq, Power, Temp, Usage
from .proto import MsgCommand

_log = logging.getLogger(__name__)

POWERCAP_PREFIX = "/sys/class/powercap/intel-rapl:"
THERMAL_PREFIX = "/sys/class/thermal/thermal_zone"


class CpuErrorKind(enum.Enum):
    SYS_INFO = "SysInfoError"
    FD = "FdError"
    FD_NOT_FOUND = "FdNotFound"
    PARSE = "ParseError"
    TOO_FREQUENT = "TooFrequent"
    OVERFLOW = "Overflow"


class CpuError(Exception):
    """Reading the processor's state failed."""

    def __init__(self, kind: CpuErrorKind, cause: Optional[FdError] = None) -> None:
        self.kind = kind
        self.cause = cause
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.kind is CpuErrorKind.FD:
            return f"FdError: {self.cause}"
        return self.kind.value


def add_fd(
    fd_list: dict[str, Fd],
    common_path: str,
    key: str,
    value: str,
    key_to_add: str,
    max_index: int,
) -> None:
    """Find the numbered directory whose ``key`` file reads ``value`` and open its ``key_to_add``.

    For example ``add_fd(fds, "/sys/class/powercap/intel-rapl:", "name",
    "package-0", "energy_uj", 3)``.  The search stops at the first directory
    without a ``key`` file.
    """
    for index in range(max_index):
        try:
            probe = Fd(f"{common_path}{index}/{key}")
        except FdError:
            break
        with probe:
            try:
                found = probe.read(32) == value
            except FdError:
                continue
        if found:
            try:
                fd_list[key_to_add] = Fd(f"{common_path}{index}/{key_to_add}")
            except FdError:
                continue
            break


def _cpu_name() -> str:
    vendor = brand = ""
    try:
        with open("/proc/cpuinfo", encoding="utf-8", errors="replace") as handle:
            for line in handle:
                key, _, val = line.partition(":")
                key = key.strip()
                if key == "vendor_id" and not vendor:
                    vendor = val.strip()
                elif key == "model name" and not brand:
                    brand = val.strip()
                if vendor and brand:
                    break
    except OSError:
        pass
    if not brand:
        brand = platform.processor()
    return f"{vendor}:{brand}"


def _frequencies() -> list[int]:
    try:
        freqs = psutil.cpu_freq(percpu=True)
    except (AttributeError, NotImplementedError, OSError):
        return []
    return [max(int(item.current), 0) for item in freqs or []]


def _usages() -> list[float]:
    return [float(item) for item in psutil.cpu_percent(percpu=True)]


def _read_int(fd_list: dict[str, Fd], key: str) -> int:
    fd = fd_list.get(key)
    if fd is None:
        raise CpuError(CpuErrorKind.FD_NOT_FOUND)
    try:
        text = fd.read(32)
    except FdError as err:
        raise CpuError(CpuErrorKind.FD, err) from err
    try:
        value = int(text)
    except ValueError as err:
        raise CpuError(CpuErrorKind.PARSE) from err
    if value < 0:
        raise CpuError(CpuErrorKind.PARSE)
    return value


class IntelCpu(Component):
    """Package power, temperature, per-core usage and frequency of an Intel CPU."""

    def __init__(self, index: int, name: str, fd_list: dict[str, Fd]) -> None:
        self.index = index
        self.name = name
        self.fd_list = fd_list
        self.freq: list[int] = _frequencies()
        self.usage: list[float] = _usages()
        self.energy_consumption = 0
        self.last_refresh_time_stamp = time.monotonic()
        self.period_power = 0
        self.temp = 0

    @classmethod
    def init(
        cls,
        index: int,
        powercap_prefix: str = POWERCAP_PREFIX,
        thermal_prefix: str = THERMAL_PREFIX,
    ) -> IntelCpu:
        """Locate the package energy counter and temperature sensor and take a first reading."""
        fd_list: dict[str, Fd] = {}
        add_fd(fd_list, powercap_prefix, "name", "package-0", "energy_uj", 3)
        add_fd(fd_list, thermal_prefix, "type", "x86_pkg_temp", "temp", 3)
        cpu = cls(index, _cpu_name(), fd_list)
        cpu.energy_consumption = _read_int(fd_list, "energy_uj")
        return cpu

    def refresh(self) -> None:
        """Update power, temperature, usage and frequency.

        Calls less than a second apart or more than ten seconds apart are
        rejected.
        """
        elapsed = time.monotonic() - self.last_refresh_time_stamp
        if elapsed < 1:
            raise CpuError(CpuErrorKind.TOO_FREQUENT)
        if int(elapsed) > 10:
            raise CpuError(CpuErrorKind.OVERFLOW)

        current = _read_int(self.fd_list, "energy_uj")
        # The counter can reset, e.g. on resume from suspend.
        if current > self.energy_consumption:
            elapsed_ms = int((time.monotonic() - self.last_refresh_time_stamp) * 1000)
            self.period_power = (current - self.energy_consumption) // max(elapsed_ms, 1)
        self.energy_consumption = current
        self.last_refresh_time_stamp = time.monotonic()

        self.temp = _read_int(self.fd_list, "temp")
        self.usage = _usages()
        self.freq = _frequencies()

    def get_desc(self) -> Desc:
        return Desc(Category.CPU, self.index, self.name)

    def refresh_status(self) -> None:
        try:
            self.refresh()
        except CpuError as err:
            raise ComponentError("lowlevel", str(err)) from err

    def handle_command(self, command: MsgCommand, payload: Sequence[bytes]) -> list[bytes]:
        if command is MsgCommand.GET_STATUS:
            status = CpuStatus(
                freq=Freq(list(self.freq)),
                usage=Usage(list(self.usage)),
                power=Power(self.period_power),
                temp=Temp(self.temp),
            )
            return [status.serialize()]
        if command is MsgCommand.SET_FREQ:
            _log.info("SetFreq")
        return []