"""Fan speed control building blocks: hwmon chips, sensors, fans, speed curves, storage and metrics."""

__version__ = "0.8.0"

__all__ = [
    "curves",
    "fans",
    "fileutil",
    "hwmon",
    "mathutil",
    "monitor",
    "persistence",
    "pid",
    "sensors",
    "statistics",
    "ui",
]