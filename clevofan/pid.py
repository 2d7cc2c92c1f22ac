"""PID control of fan duty from temperature."""

from __future__ import annotations

import dataclasses
import logging
import math
import time
from dataclasses import dataclass
from typing import Optional

from .fields import Temp

_log = logging.getLogger(__name__)

_MAX_ERROR = 8000.0
_MAX_INTEGRAL = 2000.0


@dataclass
class PidCfg:
    """Target temperature, gains and output smoothing."""

    target_temp: float
    kp: float
    ki: float
    kd: float
    smoothing_factor: float

    def to_dict(self) -> dict[str, float]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data) -> PidCfg:
        values = {}
        for item in dataclasses.fields(cls):
            if item.name not in data:
                raise ValueError(f"PID config is missing '{item.name}'")
            try:
                values[item.name] = float(data[item.name])
            except (TypeError, ValueError) as err:
                raise ValueError(
                    f"PID config value '{item.name}' is not a number: {data[item.name]!r}"
                ) from err
        return cls(**values)


class PidController:
    """Turns temperature readings into a fan duty between 0 and 100."""

    def __init__(self, cfg: PidCfg) -> None:
        self.cfg = cfg
        self.prev_error = 0.0
        self.integral = 0.0
        self.last_update_time = time.monotonic() - 2.0
        self.prev_speed: Optional[float] = None

    def update(self, current_temp: Temp) -> int:
        """Return the fan duty in percent for ``current_temp``."""
        temp = float(current_temp.value)
        now = time.monotonic()
        delta_time = now - self.last_update_time
        self.last_update_time = now

        error = min(max(temp - self.cfg.target_temp, 0.0), _MAX_ERROR)
        self.integral = min(max(self.integral + error * delta_time, 0.0), _MAX_INTEGRAL)
        derivative = (error - self.prev_error) / delta_time if delta_time > 0 else 0.0
        self.prev_error = error
        raw_output = self.cfg.kp * error + self.cfg.ki * self.integral + self.cfg.kd * derivative
        _log.debug(
            "current_temp: %s, target_temp: %s, error: %s, raw_output: %s, integral: %s",
            temp,
            self.cfg.target_temp,
            error,
            raw_output,
            self.integral,
        )

        raw_speed = min(max(raw_output / 100.0, 0.0), 100.0)
        if self.prev_speed is None:
            smoothed = raw_speed
        else:
            smoothed = self.prev_speed + (raw_speed - self.prev_speed) * self.cfg.smoothing_factor
        self.prev_speed = smoothed
        if math.isnan(smoothed):
            return 0
        return int(smoothed)