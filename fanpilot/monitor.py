"""Periodic polling of a sensor into its moving average."""

from __future__ import annotations

import threading

from . import ui
from .fileutil import CommandError, PermissionCheckError
from .mathutil import update_simple_moving_avg
from .sensors import Sensor

_UPDATE_ERRORS = (OSError, ValueError, CommandError, PermissionCheckError)


def update_sensor(sensor: Sensor, window_size: int) -> None:
    """Read the sensor and fold the value into its moving average."""
    value = sensor.read_value()
    sensor.moving_avg = update_simple_moving_avg(sensor.moving_avg, window_size, value)


class SensorMonitor:
    """Polls one sensor at a fixed rate until told to stop."""

    def __init__(self, sensor: Sensor, polling_rate: float, window_size: int):
        self.sensor = sensor
        self.polling_rate = polling_rate
        self.window_size = window_size

    def run(self, stop_event: threading.Event) -> None:
        """Update the sensor every polling_rate seconds until stop_event is set."""
        while not stop_event.wait(self.polling_rate):
            try:
                update_sensor(self.sensor, self.window_size)
            except _UPDATE_ERRORS as exc:
                ui.warning("Error updating sensor: %s", exc)
        ui.info("Stopping sensor monitor for sensor %s...", self.sensor.id)