"""Speed curves mapping sensor readings to fan speeds in [0..255]."""

from __future__ import annotations

import enum
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Union

from . import ui
from .mathutil import INTERPOLATION_TYPE_LINEAR, calculate_interpolated_curve_value
from .pid import PidLoop
from .sensors import Sensor


class FunctionType(str, enum.Enum):
    SUM = "sum"
    DIFFERENCE = "difference"
    DELTA = "delta"
    MINIMUM = "minimum"
    MAXIMUM = "maximum"
    AVERAGE = "average"


@dataclass
class LinearCurveConfig:
    sensor: str = ""
    min_temp: int = 0
    max_temp: int = 0
    steps: Optional[Dict[int, float]] = None


@dataclass
class PidCurveConfig:
    sensor: str = ""
    set_point: float = 0.0
    p: float = 0.0
    i: float = 0.0
    d: float = 0.0


@dataclass
class FunctionCurveConfig:
    type: Union[FunctionType, str] = FunctionType.SUM
    curves: List[str] = field(default_factory=list)


@dataclass
class CurveConfig:
    id: str = ""
    linear: Optional[LinearCurveConfig] = None
    pid: Optional[PidCurveConfig] = None
    function: Optional[FunctionCurveConfig] = None


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


class SpeedCurve(ABC):
    """A curve whose evaluation yields a speed value in [0..255]."""

    def __init__(self, config: CurveConfig):
        self.config = config
        self.value = 0

    @property
    def id(self) -> str:
        return self.config.id

    @abstractmethod
    def evaluate(self) -> int:
        """Compute the current value of the curve."""


class LinearSpeedCurve(SpeedCurve):
    """Linear mapping of a sensor's moving average, by min/max or by steps."""

    def __init__(self, config: CurveConfig, sensors: Mapping[str, Sensor]):
        super().__init__(config)
        self.sensors = sensors

    def evaluate(self) -> int:
        linear = self.config.linear
        avg_temp = self.sensors[linear.sensor].moving_avg

        if linear.steps is not None:
            value = _round_half_away(
                calculate_interpolated_curve_value(
                    linear.steps, INTERPOLATION_TYPE_LINEAR, avg_temp / 1000
                )
            )
        else:
            # degrees to milli-degrees
            min_temp = float(linear.min_temp) * 1000
            max_temp = float(linear.max_temp) * 1000
            if avg_temp >= max_temp:
                value = 255
            elif avg_temp <= min_temp:
                value = 0
            else:
                value = int((avg_temp - min_temp) / (max_temp - min_temp) * 255)

        self.value = value
        return value


class PidSpeedCurve(SpeedCurve):
    """Curve driven by a PID loop towards a temperature set point."""

    def __init__(
        self,
        config: CurveConfig,
        sensors: Mapping[str, Sensor],
        pid_loop: Optional[PidLoop] = None,
    ):
        super().__init__(config)
        self.sensors = sensors
        self.pid_loop = pid_loop or PidLoop(config.pid.p, config.pid.i, config.pid.d)

    def evaluate(self) -> int:
        """Advance the loop with a fresh reading; reading errors propagate."""
        measured = self.sensors[self.config.pid.sensor].read_value()
        loop_value = self.pid_loop.loop(self.config.pid.set_point, measured / 1000.0)
        loop_value = min(1.0, max(0.0, loop_value))
        curve_value = int(loop_value * 255)
        self.value = curve_value
        return curve_value


class FunctionSpeedCurve(SpeedCurve):
    """Combination of other curves by a function such as sum or maximum."""

    def __init__(self, config: CurveConfig, curves: Mapping[str, SpeedCurve]):
        super().__init__(config)
        self.curves = curves

    def evaluate(self) -> int:
        function = self.config.function
        values = [self.curves[curve_id].evaluate() for curve_id in function.curves]

        try:
            kind = FunctionType(function.type)
        except ValueError:
            ui.fatal("Unknown curve function: %s", function.type)
            raise

        if not values and kind in (FunctionType.DELTA, FunctionType.AVERAGE):
            raise ValueError(f"function curve {self.id} has no curves to combine")

        if kind is FunctionType.SUM:
            value = int(min(255, sum(values)))
        elif kind is FunctionType.DIFFERENCE:
            difference = values[0] - sum(values[1:]) if values else 0
            value = int(max(0, difference))
        elif kind is FunctionType.DELTA:
            value = int(max(values) - min(values))
        elif kind is FunctionType.MINIMUM:
            value = int(min(255, *values))
        elif kind is FunctionType.MAXIMUM:
            value = int(max(0, *values))
        else:
            value = math.trunc(sum(values) / len(values))

        self.value = value
        return value


def new_speed_curve(
    config: CurveConfig,
    sensors: Mapping[str, Sensor],
    curves: Mapping[str, SpeedCurve],
) -> SpeedCurve:
    """Create the speed curve matching the kind configured."""
    if config.linear is not None:
        return LinearSpeedCurve(config, sensors)
    if config.pid is not None:
        return PidSpeedCurve(
            config, sensors, PidLoop(config.pid.p, config.pid.i, config.pid.d)
        )
    if config.function is not None:
        return FunctionSpeedCurve(config, curves)
    raise ValueError(f"no matching curve type for curve: {config.id}")