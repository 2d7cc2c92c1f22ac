"""Controller-side views of the daemon's hardware components."""

from __future__ import annotations

import abc
from contextlib import contextmanager
from typing import Iterator, Sequence

from .fields import (
    CpuStatus,
    FanIndex,
    FanSpeed,
    FieldError,
    Freq,
    Power,
    TargetFanSpeed,
    TargetFreq,
    Temp,
    Usage,
)
from .proto import MsgBody, MsgCommand, MsgMode, MsgPacket


class ComponentError(Exception):
    """A component could not be refreshed or updated.

    ``kind`` is one of ``"field"``, ``"query"``, ``"unsupported"`` or
    ``"bad_reply"``.
    """

    def __init__(self, kind: str, message: str = "") -> None:
        super().__init__(message or kind)
        self.kind = kind
        self.message = message


@contextmanager
def _field_errors() -> Iterator[None]:
    try:
        yield
    except FieldError as err:
        raise ComponentError("field", str(err)) from err


def _payload_item(payload: Sequence[bytes], index: int) -> bytes:
    try:
        return payload[index]
    except IndexError as err:
        raise ComponentError(
            "bad_reply", f"reply has {len(payload)} payloads, needed item {index}"
        ) from err


class Visitor(abc.ABC):
    """Operation applied to components without changing their classes."""

    @abc.abstractmethod
    def visit_cpu(self, cpu: Cpu) -> None: ...

    @abc.abstractmethod
    def visit_fan(self, fan: Fan) -> None: ...


class Component(abc.ABC):
    """A component mirrored from the daemon; requests go out through ``sender``."""

    def __init__(self, id_num: int, sender) -> None:
        self.id_num = id_num
        self._sender = sender

    def _send(self, command: MsgCommand, payload: Sequence[bytes] = ()) -> None:
        packet = MsgPacket(MsgMode.REQUEST, None, 0, self.id_num, command)
        self._sender.put(MsgBody(packet, payload))

    @abc.abstractmethod
    def refresh_status(self) -> None:
        """Ask the daemon for this component's current status."""

    @abc.abstractmethod
    def update_from_reply(self, command: MsgCommand, payload: Sequence[bytes]) -> None:
        """Update local state from a reply to ``command``."""

    @abc.abstractmethod
    def accept(self, visitor: Visitor) -> None:
        """Dispatch to the visitor method for this component type."""


class Cpu(Component):
    """Processor state as last reported by the daemon."""

    def __init__(self, id_num: int, sender) -> None:
        super().__init__(id_num, sender)
        self.desc = ""
        self.freq = Freq()
        self.usage = Usage()
        self.temp = Temp()
        self.power = Power()

    def set_freq(self, target_freq: TargetFreq) -> None:
        with _field_errors():
            payload = target_freq.serialize()
        self._send(MsgCommand.SET_FREQ, [payload])

    def refresh_status(self) -> None:
        self._send(MsgCommand.GET_STATUS)

    def update_from_reply(self, command: MsgCommand, payload: Sequence[bytes]) -> None:
        if command is not MsgCommand.GET_STATUS:
            return
        if len(payload) != 1:
            raise ComponentError(
                "bad_reply", f"status reply needs 1 payload, got {len(payload)}"
            )
        with _field_errors():
            status = CpuStatus.deserialize(payload[0])
        self.freq = status.freq
        self.usage = status.usage
        self.temp = status.temp
        self.power = status.power

    def accept(self, visitor: Visitor) -> None:
        visitor.visit_cpu(self)


class Fan(Component):
    """Fan speeds as last reported by the daemon."""

    def __init__(self, id_num: int, sender) -> None:
        super().__init__(id_num, sender)
        self.cpu_fan_speed = FanSpeed()
        self.gpu_fan_speed = FanSpeed()

    def set_fan_speed(self, index: FanIndex, target_fan_speed: TargetFanSpeed) -> None:
        with _field_errors():
            payload = [index.serialize(), target_fan_speed.serialize()]
        self._send(MsgCommand.SET_FAN_SPEED, payload)

    def refresh_status(self) -> None:
        with _field_errors():
            payload = FanIndex.ALL.serialize()
        self._send(MsgCommand.GET_FAN_SPEED, [payload])

    def update_from_reply(self, command: MsgCommand, payload: Sequence[bytes]) -> None:
        if command is not MsgCommand.GET_FAN_SPEED:
            return
        with _field_errors():
            fan_index = FanIndex.deserialize(_payload_item(payload, 0))
            if fan_index is FanIndex.CPU:
                self.cpu_fan_speed = FanSpeed.deserialize(_payload_item(payload, 1))
            elif fan_index is FanIndex.GPU:
                self.gpu_fan_speed = FanSpeed.deserialize(_payload_item(payload, 1))
            else:
                cpu = FanSpeed.deserialize(_payload_item(payload, 1))
                gpu = FanSpeed.deserialize(_payload_item(payload, 2))
                self.cpu_fan_speed, self.gpu_fan_speed = cpu, gpu

    def accept(self, visitor: Visitor) -> None:
        visitor.visit_fan(self)