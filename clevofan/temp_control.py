"""Fan control driven by component temperatures."""

from __future__ import annotations

import abc
import copy
import enum
import json
import os
from dataclasses import dataclass, field

from .client_components import Cpu, Fan, Visitor
from .fields import FanIndex, TargetFanSpeed, Temp
from .pid import PidCfg, PidController


class Method(enum.Enum):
    """How fan speed is derived from temperature."""

    TABLE_LOOK_UP = "TableLookUp"
    TEMP_RANGE = "TempRange"
    PID = "Pid"


class ControllerError(ValueError):
    """Controller configuration or input was rejected.

    ``kind`` is one of ``"invalid_temp"``, ``"invalid_fan_speed"``,
    ``"invalid_method"`` or ``"not_support"``.
    """

    def __init__(self, kind: str, message: str = "") -> None:
        super().__init__(message or kind)
        self.kind = kind
        self.message = message


class ControllerAlgo(abc.ABC):
    """Algorithm mapping a temperature to a fan duty."""

    @abc.abstractmethod
    def update(self, current_temp: Temp) -> int:
        """Return the fan speed in percent (0 to 100)."""


ControllerAlgo.register(PidController)


def _default_pid_cfg() -> PidCfg:
    return PidCfg(target_temp=60000.0, kp=1.0, ki=0.5, kd=0.5, smoothing_factor=0.3)


def _parse_method(value) -> Method:
    try:
        return Method(value)
    except ValueError as err:
        raise ControllerError("invalid_method", f"unknown control method {value!r}") from err


def _build_algo(method: Method, pid_cfg: PidCfg):
    if method is Method.PID:
        return PidController(pid_cfg)
    raise ControllerError("not_support", f"{method.value} control is not supported")


@dataclass
class ControllerCfg:
    """Control methods and PID settings for CPU and GPU fans."""

    cpu_method: Method = Method.PID
    gpu_method: Method = Method.PID
    cpu_pid_cfg: PidCfg = field(default_factory=_default_pid_cfg)
    gpu_pid_cfg: PidCfg = field(default_factory=_default_pid_cfg)

    def to_dict(self) -> dict:
        return {
            "cpu_method": self.cpu_method.value,
            "gpu_method": self.gpu_method.value,
            "cpu_pid_cfg": self.cpu_pid_cfg.to_dict(),
            "gpu_pid_cfg": self.gpu_pid_cfg.to_dict(),
        }

    @classmethod
    def from_dict(cls, data) -> ControllerCfg:
        missing = [key for key in ("cpu_method", "gpu_method", "cpu_pid_cfg", "gpu_pid_cfg")
                   if key not in data]
        if missing:
            raise ValueError(f"controller config is missing {', '.join(missing)}")
        return cls(
            cpu_method=_parse_method(data["cpu_method"]),
            gpu_method=_parse_method(data["gpu_method"]),
            cpu_pid_cfg=PidCfg.from_dict(data["cpu_pid_cfg"]),
            gpu_pid_cfg=PidCfg.from_dict(data["gpu_pid_cfg"]),
        )


class Controller(Visitor):
    """Reads CPU temperature from components and sets the CPU fan speed.

    Settings are loaded from ``cfg_path`` when it exists and written back
    there on ``close``.
    """

    def __init__(self, cfg_path: str) -> None:
        self.cfg_path = cfg_path
        self.cfg = ControllerCfg()
        self.cpu_algo = PidController(self.cfg.cpu_pid_cfg)
        self.cpu_current_temp = Temp()
        self.gpu_algo = PidController(self.cfg.gpu_pid_cfg)
        self.gpu_current_temp = Temp()
        if os.path.exists(cfg_path):
            self.load_from_json()

    def load_from_json(self) -> None:
        """Read settings from the config file and rebuild the CPU algorithm."""
        with open(self.cfg_path, encoding="utf-8") as handle:
            cfg = ControllerCfg.from_dict(json.load(handle))
        self.cpu_algo = _build_algo(cfg.cpu_method, cfg.cpu_pid_cfg)
        self.cfg = cfg

    def save_to_json(self) -> None:
        """Write the current settings to the config file."""
        with open(self.cfg_path, "w", encoding="utf-8") as handle:
            json.dump(self.cfg.to_dict(), handle)

    def close(self) -> None:
        self.save_to_json()

    def __enter__(self) -> Controller:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def visit_cpu(self, cpu: Cpu) -> None:
        self.cpu_current_temp = copy.copy(cpu.temp)

    def visit_fan(self, fan: Fan) -> None:
        duty = self.cpu_algo.update(self.cpu_current_temp)
        fan.set_fan_speed(FanIndex.CPU, TargetFanSpeed(duty))