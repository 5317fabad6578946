"""Metric collectors for fans, curves and sensors, with text exposition."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Sequence, Tuple

from .curves import PidSpeedCurve, SpeedCurve
from .fans import Fan, FeatureFlag
from .fileutil import CommandError, PermissionCheckError
from .sensors import Sensor

NAMESPACE = "fanpilot"

GAUGE = "gauge"
COUNTER = "counter"

_READ_ERRORS = (OSError, ValueError, KeyError, CommandError, PermissionCheckError)


def _fq_name(namespace: str, subsystem: str, name: str) -> str:
    return "_".join(part for part in (namespace, subsystem, name) if part)


@dataclass(frozen=True)
class MetricDesc:
    """Name, help text and label names of a metric family."""

    fq_name: str
    help: str
    label_names: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Metric:
    """One sample of a metric family."""

    desc: MetricDesc
    value_type: str
    value: float
    label_values: Tuple[str, ...] = ()

    @property
    def labels(self) -> Dict[str, str]:
        return dict(zip(self.desc.label_names, self.label_values))


class FanCollector:
    """Current PWM, and RPM where supported, of each fan."""

    def __init__(self, fans: Sequence[Fan]):
        self.fans = list(fans)
        self.pwm = MetricDesc(
            _fq_name(NAMESPACE, "fan", "pwm"), "Current PWM value of the fan", ("id",)
        )
        self.rpm = MetricDesc(
            _fq_name(NAMESPACE, "fan", "rpm"), "Current RPM value of the fan", ("id",)
        )

    def describe(self) -> List[MetricDesc]:
        return [self.pwm, self.rpm]

    def collect(self) -> Iterator[Metric]:
        for fan in self.fans:
            try:
                pwm = fan.read_pwm()
            except _READ_ERRORS:
                pwm = 0
            yield Metric(self.pwm, GAUGE, float(pwm), (fan.id,))

            if fan.supports(FeatureFlag.RPM_SENSOR):
                try:
                    rpm = fan.read_rpm()
                except _READ_ERRORS:
                    rpm = 0
                yield Metric(self.rpm, GAUGE, float(rpm), (fan.id,))


class CurveCollector:
    """Current value of each speed curve."""

    def __init__(self, curves: Sequence[SpeedCurve]):
        self.curves = list(curves)
        self.value = MetricDesc(
            _fq_name(NAMESPACE, "curve", "value"), "Current value of the curve", ("id",)
        )

    def describe(self) -> List[MetricDesc]:
        return [self.value]

    def collect(self) -> Iterator[Metric]:
        for curve in self.curves:
            try:
                value = curve.evaluate()
            except _READ_ERRORS:
                # a PID curve keeps reporting its last value when a reading fails
                value = curve.value if isinstance(curve, PidSpeedCurve) else 0
            yield Metric(self.value, GAUGE, float(value), (curve.id,))


class SensorCollector:
    """Current value of each sensor."""

    def __init__(self, sensors: Sequence[Sensor]):
        self.sensors = list(sensors)
        self.value = MetricDesc(
            _fq_name(NAMESPACE, "sensor", "value"), "Current value of the sensor", ("id",)
        )

    def describe(self) -> List[MetricDesc]:
        return [self.value]

    def collect(self) -> Iterator[Metric]:
        for sensor in self.sensors:
            try:
                value = sensor.read_value()
            except _READ_ERRORS:
                value = 0.0
            yield Metric(self.value, GAUGE, float(value), (sensor.id,))


def _format_value(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def _escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


def _escape_label(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def render_metrics(collectors: Iterable) -> str:
    """Render the metrics of all collectors in the text exposition format."""
    families: Dict[str, Tuple[MetricDesc, str, List[Metric]]] = {}
    for collector in collectors:
        for metric in collector.collect():
            name = metric.desc.fq_name
            if name not in families:
                families[name] = (metric.desc, metric.value_type, [])
            families[name][2].append(metric)

    lines: List[str] = []
    for name, (desc, value_type, metrics) in families.items():
        lines.append(f"# HELP {name} {_escape_help(desc.help)}")
        lines.append(f"# TYPE {name} {value_type}")
        for metric in metrics:
            labels = ",".join(
                f'{label}="{_escape_label(value)}"'
                for label, value in zip(desc.label_names, metric.label_values)
            )
            suffix = "{" + labels + "}" if labels else ""
            lines.append(f"{name}{suffix} {_format_value(metric.value)}")
    return "\n".join(lines) + ("\n" if lines else "")