"""A simple PID control loop."""

from __future__ import annotations

import time


class PidLoop:
    """PID controller whose time step is measured between calls."""

    def __init__(self, p: float, i: float, d: float):
        self.p = p
        self.i = i
        self.d = d
        self._error = 0.0
        self._integral = 0.0
        self._last_time: float | None = None

    def loop(self, target: float, measured: float) -> float:
        """Advance the loop; the first call only records state and yields 0."""
        output = 0.0
        err = target - measured
        now = time.monotonic()
        if self._last_time is not None:
            dt = now - self._last_time
            self._integral += err * dt
            derivative = (err - self._error) / dt
            output = self.p * err + self.i * self._integral + self.d * derivative
        self._error = err
        self._last_time = now
        return output