"""Daemon-side hardware components and the fan controlled through the EC."""

from __future__ import annotations

import abc
import logging
from typing import Sequence

from .ec import EcAccessor
from .fields import Category, Desc, FanIndex, FanSpeed, FieldError, TargetFanSpeed
from .proto import MsgCommand, MsgError, MsgErrorKind

_log = logging.getLogger(__name__)

EC_CPU_FAN_RPM_HI_ADDR = 0xD0
EC_CPU_FAN_RPM_LO_ADDR = 0xD1
EC_GPU_FAN_RPM_HI_ADDR = 0xD2
EC_GPU_FAN_RPM_LO_ADDR = 0xD3
EC_SET_FAN_SPEED_CMD = 0x99
EC_SET_FAN_AUTO_ADDR = 0xFF

_RPM_DIVIDEND = 2156220


class ComponentError(Exception):
    """A component could not refresh its status.

    ``kind`` is one of ``"lowlevel"``, ``"field"``, ``"query"``,
    ``"unsupported"`` or ``"bad_reply"``.
    """

    def __init__(self, kind: str, message: str = "") -> None:
        super().__init__(message or kind)
        self.kind = kind
        self.message = message


class CommandError(Exception):
    """A command could not be handled; ``error`` is sent back in the reply."""

    def __init__(self, error: MsgError) -> None:
        super().__init__(str(error))
        self.error = error


def _unsupported(command: MsgCommand) -> CommandError:
    return CommandError(
        MsgError(
            MsgErrorKind.UNSUPPORTED_OPERATION,
            f"Operation not supported by the hardware:{command}",
        )
    )


class Component(abc.ABC):
    """Hardware the daemon monitors and controls."""

    @abc.abstractmethod
    def get_desc(self) -> Desc:
        """Describe this component."""

    def refresh_status(self) -> None:
        """Refresh cached hardware readings; does nothing by default."""

    def handle_command(self, command: MsgCommand, payload: Sequence[bytes]) -> list[bytes]:
        """Handle a request and return the reply payloads."""
        raise _unsupported(command)


class Fan(Component):
    """CPU and GPU fans driven through the embedded controller."""

    def __init__(self, ec=None) -> None:
        self.ec = EcAccessor() if ec is None else ec
        self.cpu_fan_speed = FanSpeed()
        self.gpu_fan_speed = FanSpeed()

    def get_fan_rpm(self, category: Category) -> int:
        """Return the fan speed in RPM, or 0 when the fan is stopped."""
        if category is Category.CPU:
            hi = self.ec.read_byte(EC_CPU_FAN_RPM_HI_ADDR)
            lo = self.ec.read_byte(EC_CPU_FAN_RPM_LO_ADDR)
        elif category is Category.GPU:
            hi = self.ec.read_byte(EC_GPU_FAN_RPM_HI_ADDR)
            lo = self.ec.read_byte(EC_GPU_FAN_RPM_LO_ADDR)
        else:
            raise ValueError(f"Invalid fan category: {category!r}")
        raw = ((hi & 0xFF) << 8) | (lo & 0xFF)
        return 0 if raw == 0 else _RPM_DIVIDEND // raw

    def set_fan_speed(self, category: Category, duty: int) -> None:
        """Set a fixed duty cycle in percent (0 to 100)."""
        _log.info("Fan set_fan_speed duty: %s", duty)
        if not 0 <= duty <= 100:
            raise ValueError("Duty cycle must be between 0 and 100")
        self.ec.cmd_write(EC_SET_FAN_SPEED_CMD, int(category), duty * 255 // 100)

    def set_fan_auto(self, category: Category) -> None:
        """Return the fan to automatic control."""
        _log.info("Fan set_fan_auto")
        self.ec.cmd_write(EC_SET_FAN_SPEED_CMD, EC_SET_FAN_AUTO_ADDR, int(category))

    def get_desc(self) -> Desc:
        return Desc(Category.FAN, 0, "Fan")

    def refresh_status(self) -> None:
        self.cpu_fan_speed = FanSpeed(self.get_fan_rpm(Category.CPU))
        self.gpu_fan_speed = FanSpeed(self.get_fan_rpm(Category.GPU))

    def handle_command(self, command: MsgCommand, payload: Sequence[bytes]) -> list[bytes]:
        """Handle a fan request; the reply echoes the request payloads first."""
        if not payload:
            raise CommandError(
                MsgError(
                    MsgErrorKind.INVALID_COMMAND,
                    "Attempt to communicate with 'fan' without index payload",
                )
            )
        reply = [bytes(item) for item in payload]
        try:
            fan_index = FanIndex.deserialize(payload[0])
            if command is MsgCommand.GET_FAN_SPEED:
                if fan_index in (FanIndex.ALL, FanIndex.CPU):
                    reply.append(self.cpu_fan_speed.serialize())
                if fan_index in (FanIndex.ALL, FanIndex.GPU):
                    reply.append(self.gpu_fan_speed.serialize())
            elif command is MsgCommand.SET_FAN_SPEED:
                if fan_index is FanIndex.GPU:
                    targets = [(Category.GPU, payload[1])]
                elif fan_index is FanIndex.CPU:
                    targets = [(Category.CPU, payload[1])]
                else:
                    targets = [(Category.CPU, payload[1]), (Category.GPU, payload[2])]
                decoded = [(cat, TargetFanSpeed.deserialize(data)) for cat, data in targets]
                for category, target in decoded:
                    self.set_fan_speed(category, target.duty)
            elif command is MsgCommand.SET_FAN_AUTO:
                if fan_index in (FanIndex.ALL, FanIndex.CPU):
                    self.set_fan_auto(Category.CPU)
                if fan_index in (FanIndex.ALL, FanIndex.GPU):
                    self.set_fan_auto(Category.GPU)
        except (FieldError, IndexError, ValueError) as err:
            raise CommandError(MsgError(MsgErrorKind.INVALID_COMMAND, str(err))) from err
        return reply