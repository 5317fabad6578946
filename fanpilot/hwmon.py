"""Discovery of hwmon fans and temperature sensors from detected chips."""

from __future__ import annotations

import enum
import os
import posixpath
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from . import ui
from .fans import MAX_PWM_VALUE, MIN_PWM_VALUE, FanConfig, HwMonFan, HwMonFanConfig
from .sensors import HwmonSensor

_PLATFORM_PATTERN = re.compile(r".*/platform/\{\}/.*")
_FAN_CHANNEL_PATTERN = re.compile(r"fan([+-]?\d+)")


class BusType(enum.IntEnum):
    ISA = 1
    PCI = 2
    VIRTUAL = 4
    ACPI = 5
    HID = 6
    SCSI = 8


class FeatureType(enum.IntEnum):
    IN = 0x00
    FAN = 0x01
    TEMP = 0x02
    POWER = 0x03
    ENERGY = 0x04
    CURR = 0x05
    HUMIDITY = 0x06


class SubFeatureType(enum.IntEnum):
    FAN_INPUT = 0x100
    FAN_MIN = 0x101
    FAN_MAX = 0x102
    TEMP_INPUT = 0x200
    TEMP_MAX = 0x201
    TEMP_MAX_HYST = 0x202
    TEMP_MIN = 0x203


@dataclass
class Bus:
    type: int = 0
    nr: int = 0


@dataclass
class SubFeature:
    name: str
    type: SubFeatureType
    value: float = 0.0


@dataclass
class Feature:
    name: str
    type: FeatureType
    subfeatures: List[SubFeature] = field(default_factory=list)


@dataclass
class Chip:
    prefix: str = ""
    addr: int = 0
    bus: Bus = field(default_factory=Bus)
    path: str = ""
    features: List[Feature] = field(default_factory=list)


@dataclass
class HwMonController:
    name: str = ""
    dtype: str = ""
    modalias: str = ""
    platform: str = ""
    path: str = ""
    # fans can be matched either by enumeration index or channel number
    fans: List[HwMonFan] = field(default_factory=list)
    # hwmon index -> sensor
    sensors: Dict[int, HwmonSensor] = field(default_factory=dict)


def _read_text(path: str) -> str:
    try:
        with open(path, "rb") as handle:
            return handle.read().decode("utf-8", errors="replace")
    except OSError:
        return ""


def _device_name(device_path: str) -> str:
    return _read_text(posixpath.join(device_path, "name")).strip()


def _device_modalias(device_path: str) -> str:
    return _read_text(posixpath.join(device_path, "device", "modalias")).strip()


def _device_type(device_path: str) -> str:
    return _read_text(posixpath.join(device_path, "device", "type")).strip()


def _find_subfeature(
    subfeatures: Iterable[SubFeature], kind: SubFeatureType
) -> Optional[SubFeature]:
    return next((sub for sub in subfeatures if sub.type == kind), None)


def get_label(device_path: str, feature_name: str) -> str:
    """Label of a feature, falling back to '<device>/<feature>'."""
    label = _read_text(posixpath.join(device_path, feature_name) + "_label")
    if not label:
        return posixpath.join(posixpath.basename(device_path), feature_name)
    return label.strip()


def compute_identifier(chip: Chip) -> str:
    """Identifier of a chip in the style of the sensors tool."""
    name = chip.prefix
    if not name:
        name = _device_name(chip.path)
    if not name:
        name = os.path.basename(chip.path)

    bus = chip.bus
    if bus.type == BusType.ISA:
        return f"{name}-isa-{bus.nr}{chip.addr:03x}"
    if bus.type == BusType.PCI:
        return f"{name}-pci-{bus.nr}{chip.addr:03x}"
    if bus.type == BusType.VIRTUAL:
        return f"{name}-virtual-{bus.nr}"
    if bus.type == BusType.ACPI:
        return f"{name}-acpi-{bus.nr}"
    if bus.type == BusType.HID:
        return f"{name}-hid-{bus.nr}-{chip.addr}"
    if bus.type == BusType.SCSI:
        return f"{name}-scsi-{bus.nr}-{chip.addr}"
    return name


def find_platform(device_path: str) -> str:
    match = _PLATFORM_PATTERN.search(device_path)
    return match.group(0) if match else ""


def get_temp_sensors(chip: Chip) -> Dict[int, HwmonSensor]:
    """Temperature sensors of a chip, keyed by their 1-based index."""
    result: Dict[int, HwmonSensor] = {}
    index = 0
    for feature in chip.features:
        if feature.type != FeatureType.TEMP:
            continue
        input_sub = _find_subfeature(feature.subfeatures, SubFeatureType.TEMP_INPUT)
        if input_sub is None:
            continue
        index += 1

        max_sub = _find_subfeature(feature.subfeatures, SubFeatureType.TEMP_MAX)
        min_sub = _find_subfeature(feature.subfeatures, SubFeatureType.TEMP_MIN)

        result[index] = HwmonSensor(
            label=get_label(chip.path, feature.name),
            index=index,
            input_path=posixpath.join(chip.path, input_sub.name),
            maximum=int(max_sub.value) if max_sub is not None else -1,
            minimum=int(min_sub.value) if min_sub is not None else -1,
            moving_avg=input_sub.value,
        )
    return result


def get_fans(chip: Chip) -> List[HwMonFan]:
    """Fans of a chip that have an RPM input, in enumeration order."""
    result: List[HwMonFan] = []
    for feature in chip.features:
        if feature.type != FeatureType.FAN:
            continue
        input_sub = _find_subfeature(feature.subfeatures, SubFeatureType.FAN_INPUT)
        if input_sub is None:
            continue

        match = _FAN_CHANNEL_PATTERN.match(feature.name)
        if match is None:
            ui.warning("No channel found for '%s', ignoring.", feature.name)
            continue
        channel = int(match.group(1))

        max_sub = _find_subfeature(feature.subfeatures, SubFeatureType.FAN_MAX)
        min_sub = _find_subfeature(feature.subfeatures, SubFeatureType.FAN_MIN)
        max_pwm = int(max_sub.value) if max_sub is not None else MAX_PWM_VALUE
        min_pwm = int(min_sub.value) if min_sub is not None else MIN_PWM_VALUE

        label = get_label(chip.path, feature.name)
        index = len(result) + 1
        hwmon_config = HwMonFanConfig(
            index=index,
            rpm_channel=channel,
            pwm_channel=channel,
            sysfs_path=chip.path,
        )
        set_fan_config_paths(hwmon_config)
        result.append(
            HwMonFan(
                config=FanConfig(
                    id=label, min_pwm=min_pwm, max_pwm=max_pwm, hwmon=hwmon_config
                ),
                label=label,
                index=index,
                rpm_avg=input_sub.value,
            )
        )
    return result


def build_controllers(chips: Iterable[Chip]) -> List[HwMonController]:
    """Controllers for all chips that have at least one fan or temperature sensor."""
    controllers = []
    for chip in chips:
        identifier = compute_identifier(chip)
        platform = find_platform(chip.path) or identifier
        fan_list = get_fans(chip)
        sensor_map = get_temp_sensors(chip)
        if not fan_list and not sensor_map:
            continue
        controllers.append(
            HwMonController(
                name=identifier,
                dtype=_device_type(chip.path),
                modalias=_device_modalias(chip.path),
                platform=platform,
                path=chip.path,
                fans=fan_list,
                sensors=sensor_map,
            )
        )
    return controllers


def update_fan_config_from_hwmon_controllers(
    controllers: Iterable[HwMonController], config: FanConfig
) -> None:
    """Complete the hwmon part of a fan config from the first matching detected fan.

    Raises ValueError if the platform pattern is invalid or no fan matches.
    """
    wanted = config.hwmon
    for controller in controllers:
        try:
            matched = re.search("(?i)" + wanted.platform, controller.platform)
        except re.error as exc:
            raise ValueError(
                f"failed to match platform regex of {config.id} ({wanted.platform}) "
                f"against controller platform {controller.platform}"
            ) from exc
        if not matched:
            continue
        for fan in controller.fans:
            found = fan.config.hwmon
            if wanted.index > 0 and found.index != wanted.index:
                continue
            if wanted.rpm_channel > 0 and found.rpm_channel != wanted.rpm_channel:
                continue
            wanted.index = found.index
            wanted.rpm_channel = found.rpm_channel
            wanted.sysfs_path = found.sysfs_path
            if wanted.pwm_channel == 0:
                wanted.pwm_channel = found.pwm_channel
            set_fan_config_paths(wanted)
            return
    raise ValueError(f"no hwmon fan matched fan config: {config!r}")


def set_fan_config_paths(config: HwMonFanConfig) -> None:
    """Derive the sysfs file paths from the sysfs path and channels."""
    base = config.sysfs_path
    config.rpm_input_path = posixpath.normpath(
        posixpath.join(base, f"fan{config.rpm_channel}_input")
    )
    config.pwm_path = posixpath.normpath(posixpath.join(base, f"pwm{config.pwm_channel}"))
    config.pwm_enable_path = posixpath.normpath(
        posixpath.join(base, f"pwm{config.pwm_channel}_enable")
    )