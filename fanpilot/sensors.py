"""Temperature sensors backed by hwmon files, plain files, commands or fixed values."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from . import ui
from .fileutil import CommandError, expand_home, read_int_from_file, safe_cmd_execution

COMMAND_TIMEOUT = 2.0


@dataclass
class HwMonSensorConfig:
    platform: str = ""
    index: int = 0
    temp_input: str = ""


@dataclass
class FileSensorConfig:
    path: str = ""


@dataclass
class CmdSensorConfig:
    executable: str = ""
    args: List[str] = field(default_factory=list)


@dataclass
class SensorConfig:
    id: str = ""
    hwmon: Optional[HwMonSensorConfig] = None
    file: Optional[FileSensorConfig] = None
    cmd: Optional[CmdSensorConfig] = None


class Sensor(ABC):
    """A source of temperature readings with a moving average."""

    config: SensorConfig
    moving_avg: float

    @property
    def id(self) -> str:
        return self.config.id

    @abstractmethod
    def read_value(self) -> float:
        """Return the current value of this sensor."""


@dataclass
class HwmonSensor(Sensor):
    label: str = ""
    index: int = 0
    input_path: str = ""
    maximum: int = 0
    minimum: int = 0
    config: SensorConfig = field(default_factory=SensorConfig)
    moving_avg: float = 0.0

    def read_value(self) -> float:
        return float(read_int_from_file(self.input_path))


@dataclass
class FileSensor(Sensor):
    config: SensorConfig = field(default_factory=SensorConfig)
    moving_avg: float = 0.0

    def read_value(self) -> float:
        """Read the file; an unreadable file yields 0 with a warning."""
        path = expand_home(self.config.file.path)
        try:
            return float(read_int_from_file(path))
        except (OSError, ValueError):
            ui.warning("Unable to read int from file sensor: %s", path)
            return 0.0


@dataclass
class CmdSensor(Sensor):
    name: str = ""
    config: SensorConfig = field(default_factory=SensorConfig)
    moving_avg: float = 0.0

    def read_value(self) -> float:
        executable = self.config.cmd.executable
        try:
            output = safe_cmd_execution(executable, self.config.cmd.args, COMMAND_TIMEOUT)
        except CommandError as exc:
            raise CommandError(f"sensor {self.id}: {exc}") from exc
        try:
            return float(output)
        except ValueError:
            ui.warning(
                "sensor %s: Unable to read int from command output: %s", self.id, executable
            )
            raise


@dataclass
class VirtualSensor(Sensor):
    """A sensor holding a fixed value that doubles as its moving average."""

    name: str = ""
    value: float = 0.0

    @property
    def id(self) -> str:
        return self.name

    @property
    def config(self) -> SensorConfig:
        return SensorConfig()

    @property
    def moving_avg(self) -> float:
        return self.value

    @moving_avg.setter
    def moving_avg(self, avg: float) -> None:
        self.value = avg

    def read_value(self) -> float:
        return self.value


def new_sensor(config: SensorConfig) -> Sensor:
    """Create the sensor matching the kind configured."""
    if config.hwmon is not None:
        return HwmonSensor(
            index=config.hwmon.index,
            input_path=config.hwmon.temp_input,
            config=config,
        )
    if config.file is not None:
        return FileSensor(config=config)
    if config.cmd is not None:
        return CmdSensor(config=config)
    raise ValueError(f"no matching sensor type for sensor: {config.id}")