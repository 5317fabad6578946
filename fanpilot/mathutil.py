"""Numeric helpers: interpolation, averages, searching and rolling windows."""

from __future__ import annotations

import bisect
import math
import re
from collections import deque
from typing import Iterable, Mapping, Sequence

from . import ui

INTERPOLATION_TYPE_LINEAR = "linear"

_HEX_PATTERN = re.compile(r"[+-]?[0-9a-fA-F]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def coerce(value: float, min_value: float, max_value: float) -> float:
    """Clamp value into [min_value, max_value]."""
    if value > max_value:
        return max_value
    if value < min_value:
        return min_value
    return value


def avg(values: Sequence[float]) -> float:
    """Average of the values; NaN when there are none."""
    if not values:
        return math.nan
    return sum(values) / len(values)


def hex_string(value: str) -> str:
    """Reformat a hex string in upper case without leading zeros."""
    parsed = None
    if _HEX_PATTERN.fullmatch(value):
        number = int(value, 16)
        if _INT64_MIN <= number <= _INT64_MAX:
            parsed = number
    if parsed is None:
        ui.warning("Unable to parse value as hex: %s", value)
        return value
    return f"-{-parsed:X}" if parsed < 0 else f"{parsed:X}"


def ratio(target: float, range_min: float, range_max: float) -> float:
    """Position of target within [range_min, range_max] as a fraction."""
    return (target - range_min) / (range_max - range_min)


def update_simple_moving_avg(old_avg: float, n: int, new_value: float) -> float:
    """New simple moving average for a window of size n."""
    return old_avg + (1 / n) * (new_value - old_avg)


def interpolate_linearly(data: Mapping[int, float], start: int, stop: int) -> dict[int, float]:
    """Interpolated values for every integer in [start, stop]."""
    return {
        x: calculate_interpolated_curve_value(data, INTERPOLATION_TYPE_LINEAR, float(x))
        for x in range(start, stop + 1)
    }


def calculate_interpolated_curve_value(
    steps: Mapping[int, float], interpolation_type: str, value: float
) -> float:
    """Y value at the given input for the curve through the given steps."""
    if not steps:
        raise ValueError("cannot interpolate without any steps")
    xs = sorted(steps)
    for index, (current_x, next_x) in enumerate(zip(xs, xs[1:])):
        if index == 0 and value <= current_x:
            return steps[current_x]
        if value >= next_x:
            continue
        if value == current_x:
            return steps[current_x]
        current_y = steps[current_x]
        next_y = steps[next_x]
        return current_y + ratio(value, current_x, next_x) * (next_y - current_y)
    return steps[xs[-1]]


def _closer(lower: int, upper: int, target: int) -> int:
    return upper if target - lower >= upper - target else lower


def find_closest(target: int, options: Sequence[int]) -> int:
    """Closest value to target in sorted options; ties go to the larger."""
    if not options:
        raise ValueError("options must not be empty")
    if target <= options[0]:
        return options[0]
    if target >= options[-1]:
        return options[-1]
    index = bisect.bisect_left(options, target)
    if options[index] == target:
        return options[index]
    return _closer(options[index - 1], options[index], target)


def sorted_keys(mapping: Mapping) -> list:
    return sorted(mapping)


def extract_keys_with_distinct_values(mapping: Mapping[int, int]) -> list[int]:
    """Keys, in ascending order, at which the mapped value changes."""
    result = []
    last = -1
    for key in sorted_keys(mapping):
        value = mapping[key]
        if last == -1 or last != value:
            last = value
            result.append(key)
    return result


def contains_string(items: Iterable[str], item: str) -> bool:
    return item in items


def min_value(values: Sequence[float]) -> float:
    """Smallest value, or 0 for an empty sequence."""
    return min(values) if values else 0


def max_value(values: Sequence[float]) -> float:
    """Largest value, or 0 for an empty sequence."""
    return max(values) if values else 0


class RollingWindow:
    """Fixed-size window keeping the most recent values."""

    def __init__(self, size: int):
        if size <= 0:
            raise ValueError("window size must be positive")
        self.size = size
        self._values: deque[float] = deque(maxlen=size)

    def append(self, value: float) -> None:
        self._values.append(float(value))

    def fill(self, value: float) -> None:
        """Replace the whole window content with the given value."""
        for _ in range(self.size):
            self.append(value)

    def average(self) -> float:
        if not self._values:
            return 0.0
        return sum(self._values) / len(self._values)

    def maximum(self) -> float:
        return max(self._values, default=0.0)

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self):
        return iter(self._values)