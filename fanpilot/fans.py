"""Fans driven through hwmon sysfs files, plain files or external commands."""

from __future__ import annotations

import enum
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from . import ui
from .fileutil import expand_home, read_int_from_file, safe_cmd_execution, write_int_to_file
from .mathutil import interpolate_linearly

MAX_PWM_VALUE = 255
MIN_PWM_VALUE = 0

COMMAND_TIMEOUT = 2.0


class FeatureFlag(enum.Enum):
    RPM_SENSOR = 0
    CONTROL_MODE = 1


class ControlMode(enum.IntEnum):
    # full voltage/PWM output, no control
    DISABLED = 0
    # manual, fixed speed control via the pwm value
    PWM = 1
    # control by the mainboard
    AUTOMATIC = 2


@dataclass
class ExecConfig:
    executable: str = ""
    args: List[str] = field(default_factory=list)


@dataclass
class HwMonFanConfig:
    platform: str = ""
    index: int = 0
    rpm_channel: int = 0
    pwm_channel: int = 0
    sysfs_path: str = ""
    rpm_input_path: str = ""
    pwm_path: str = ""
    pwm_enable_path: str = ""


@dataclass
class FileFanConfig:
    path: str = ""


@dataclass
class CmdFanConfig:
    set_pwm: Optional[ExecConfig] = None
    get_pwm: Optional[ExecConfig] = None
    get_rpm: Optional[ExecConfig] = None


@dataclass
class FanConfig:
    id: str = ""
    curve: str = ""
    never_stop: bool = False
    min_pwm: Optional[int] = None
    start_pwm: Optional[int] = None
    max_pwm: Optional[int] = None
    hwmon: Optional[HwMonFanConfig] = None
    file: Optional[FileFanConfig] = None
    cmd: Optional[CmdFanConfig] = None


_LINEAR_CURVE_DATA: Dict[int, float] = interpolate_linearly({0: 0.0, 255: 255.0}, 0, 255)


class Fan(ABC):
    """A controllable fan.

    The defaults here describe a fan with a linear, fixed response and
    no means of reporting RPM or switching control modes.
    """

    config: FanConfig

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def curve_id(self) -> str:
        """Id of the speed curve associated with this fan."""
        return self.config.curve

    @property
    def never_stop(self) -> bool:
        return self.config.never_stop

    @property
    def rpm_avg(self) -> float:
        return 0.0

    @rpm_avg.setter
    def rpm_avg(self, value: float) -> None:
        pass

    @property
    def fan_curve_data(self) -> Optional[Dict[int, float]]:
        return _LINEAR_CURVE_DATA

    def get_min_pwm(self) -> int:
        """Lowest PWM value at which a spinning fan keeps spinning."""
        return MIN_PWM_VALUE

    def set_min_pwm(self, pwm: int, force: bool) -> None:
        pass

    def get_start_pwm(self) -> int:
        """Lowest PWM value at which the fan starts from a stand still."""
        return 1

    def set_start_pwm(self, pwm: int, force: bool) -> None:
        pass

    def get_max_pwm(self) -> int:
        """Highest PWM value that still yields an RPM increase."""
        return MAX_PWM_VALUE

    def set_max_pwm(self, pwm: int, force: bool) -> None:
        pass

    def read_rpm(self) -> int:
        return 0

    @abstractmethod
    def read_pwm(self) -> int:
        """Current PWM value of this fan."""

    @abstractmethod
    def write_pwm(self, pwm: int) -> None:
        """Set the PWM value of this fan."""

    def attach_fan_curve_data(self, curve_data: Dict[int, float]) -> None:
        pass

    def read_pwm_enabled(self) -> int:
        return 1

    def write_pwm_enabled(self, mode: ControlMode) -> None:
        pass

    def is_pwm_auto(self) -> bool:
        return True

    def supports(self, feature: FeatureFlag) -> bool:
        return False


def compute_pwm_boundaries(fan: Fan) -> Tuple[int, int]:
    """Start and max PWM of a fan derived from its fan curve data."""
    user_start_pwm = fan.get_start_pwm()
    start_pwm = 255
    max_pwm = 255
    data = fan.fan_curve_data or {}

    max_rpm = 0
    for pwm in sorted(data):
        avg_rpm = int(data[pwm])
        if avg_rpm > max_rpm:
            max_rpm = avg_rpm
            max_pwm = pwm
        if avg_rpm > 0 and pwm < start_pwm:
            start_pwm = pwm

    if user_start_pwm < 255:
        start_pwm = user_start_pwm

    return start_pwm, max_pwm


@dataclass
class HwMonFan(Fan):
    label: str = ""
    index: int = 0
    rpm_avg: float = 0.0
    config: FanConfig = field(default_factory=FanConfig)
    min_pwm: Optional[int] = None
    start_pwm: Optional[int] = None
    max_pwm: Optional[int] = None
    fan_curve_data: Optional[Dict[int, float]] = None
    rpm: int = 0
    pwm: int = 0

    def get_min_pwm(self) -> int:
        # only a fan that must never stop has a meaningful lower bound
        if self.never_stop and self.min_pwm is not None:
            return self.min_pwm
        return MIN_PWM_VALUE

    def set_min_pwm(self, pwm: int, force: bool) -> None:
        if self.config.min_pwm is None or force:
            self.min_pwm = pwm

    def get_start_pwm(self) -> int:
        return self.start_pwm if self.start_pwm is not None else MAX_PWM_VALUE

    def set_start_pwm(self, pwm: int, force: bool) -> None:
        if self.config.start_pwm is None or force:
            self.start_pwm = pwm

    def get_max_pwm(self) -> int:
        return self.max_pwm if self.max_pwm is not None else MAX_PWM_VALUE

    def set_max_pwm(self, pwm: int, force: bool) -> None:
        if self.config.max_pwm is None or force:
            self.max_pwm = pwm

    def read_rpm(self) -> int:
        value = read_int_from_file(self.config.hwmon.rpm_input_path)
        self.rpm = value
        return value

    def read_pwm(self) -> int:
        value = read_int_from_file(self.config.hwmon.pwm_path)
        self.pwm = value
        return value

    def write_pwm(self, pwm: int) -> None:
        ui.debug("Setting Fan PWM of '%s' to %d ...", self.id, pwm)
        write_int_to_file(pwm, self.config.hwmon.pwm_path)

    def attach_fan_curve_data(self, curve_data: Dict[int, float]) -> None:
        """Attach measured fan curve data and derive the PWM boundaries from it.

        Raises ValueError if the data is empty.
        """
        if not curve_data:
            ui.error("Cant attach empty fan curve data to fan %s", self.id)
            raise ValueError(f"empty fan curve data for fan {self.id}")

        self.fan_curve_data = curve_data

        start_pwm, max_pwm = compute_pwm_boundaries(self)
        self.set_start_pwm(start_pwm, False)
        self.set_max_pwm(max_pwm, False)
        # there is no way to measure the minimum yet
        self.set_min_pwm(start_pwm, False)

    def read_pwm_enabled(self) -> int:
        return read_int_from_file(self.config.hwmon.pwm_enable_path)

    def is_pwm_auto(self) -> bool:
        return self.read_pwm_enabled() > 1

    def write_pwm_enabled(self, mode: ControlMode) -> None:
        """Write the control mode to pwmX_enable and verify that it stuck."""
        path = self.config.hwmon.pwm_enable_path
        write_int_to_file(int(mode), path)
        try:
            current = read_int_from_file(path)
        except (OSError, ValueError) as exc:
            raise OSError("PWM mode stuck to -1") from exc
        if current != int(mode):
            raise OSError(f"PWM mode stuck to {current}")

    def supports(self, feature: FeatureFlag) -> bool:
        if feature is FeatureFlag.CONTROL_MODE:
            return os.path.exists(self.config.hwmon.pwm_enable_path)
        if feature is FeatureFlag.RPM_SENSOR:
            return os.path.exists(self.config.hwmon.rpm_input_path)
        return False


@dataclass
class FileFan(Fan):
    config: FanConfig = field(default_factory=FanConfig)
    pwm: int = 0

    def read_pwm(self) -> int:
        value = read_int_from_file(expand_home(self.config.file.path))
        self.pwm = value
        return value

    def write_pwm(self, pwm: int) -> None:
        """Write the value; a failed write is only reported."""
        path = expand_home(self.config.file.path)
        try:
            write_int_to_file(pwm, path)
        except OSError:
            ui.error("Unable to write to file: %s", self.config.file.path)

    def supports(self, feature: FeatureFlag) -> bool:
        return False


@dataclass
class CmdFan(Fan):
    config: FanConfig = field(default_factory=FanConfig)
    rpm: int = 0
    pwm: int = 0

    def _run_for_number(self, conf: ExecConfig) -> int:
        output = safe_cmd_execution(conf.executable, conf.args, COMMAND_TIMEOUT)
        try:
            return int(float(output))
        except ValueError:
            ui.warning("Unable to read int from command output: %s", conf.executable)
            raise

    def read_rpm(self) -> int:
        if not self.supports(FeatureFlag.RPM_SENSOR):
            return 0
        self.rpm = self._run_for_number(self.config.cmd.get_rpm)
        return self.rpm

    def read_pwm(self) -> int:
        self.pwm = self._run_for_number(self.config.cmd.get_pwm)
        return self.pwm

    def write_pwm(self, pwm: int) -> None:
        conf = self.config.cmd.set_pwm
        args = [arg.replace("%pwm%", str(pwm)) for arg in conf.args]
        safe_cmd_execution(conf.executable, args, COMMAND_TIMEOUT)

    def supports(self, feature: FeatureFlag) -> bool:
        if feature is FeatureFlag.RPM_SENSOR:
            return self.config.cmd.get_rpm is not None
        return False


def new_fan(config: FanConfig) -> Fan:
    """Create the fan matching the kind configured."""
    if config.hwmon is not None:
        return HwMonFan(
            label=config.id,
            index=config.hwmon.index,
            min_pwm=config.min_pwm,
            start_pwm=config.start_pwm,
            max_pwm=config.max_pwm,
            config=config,
        )
    if config.file is not None:
        return FileFan(config=config)
    if config.cmd is not None:
        return CmdFan(config=config)
    raise ValueError(f"no matching fan type for fan: {config.id}")