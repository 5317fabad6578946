import pytest

from fanpilot.fans import FanConfig, HwMonFan, HwMonFanConfig
from fanpilot.hwmon import (
    Bus,
    BusType,
    Chip,
    Feature,
    FeatureType,
    HwMonController,
    SubFeature,
    SubFeatureType,
    build_controllers,
    compute_identifier,
    find_platform,
    get_fans,
    get_label,
    get_temp_sensors,
    set_fan_config_paths,
    update_fan_config_from_hwmon_controllers,
)


def test_compute_identifier_isa():
    chip = Chip(
        prefix="ucsi_source_psy_USBC000:002",
        addr=0x0F1,
        bus=Bus(type=BusType.ISA, nr=1),
        path="/sys/class/hwmon/hwmon7",
    )
    assert compute_identifier(chip) == "ucsi_source_psy_USBC000:002-isa-10f1"


def test_compute_identifier_pci():
    chip = Chip(
        prefix="nvme", addr=0x5, bus=Bus(type=BusType.PCI, nr=1), path="/sys/class/hwmon/hwmon4"
    )
    assert compute_identifier(chip) == "nvme-pci-1005"


def test_compute_identifier_acpi():
    chip = Chip(prefix="nvme", bus=Bus(type=BusType.ACPI, nr=1), path="/sys/class/hwmon/hwmon4")
    assert compute_identifier(chip) == "nvme-acpi-1"


def test_compute_identifier_hid_and_scsi():
    hid = Chip(prefix="dev", addr=12, bus=Bus(type=BusType.HID, nr=3), path="/x")
    scsi = Chip(prefix="drv", addr=7, bus=Bus(type=BusType.SCSI, nr=0), path="/x")
    assert compute_identifier(hid) == "dev-hid-3-12"
    assert compute_identifier(scsi) == "drv-scsi-0-7"


def test_compute_identifier_reads_name_file(tmp_path):
    (tmp_path / "name").write_text("k10temp\n")
    chip = Chip(bus=Bus(type=BusType.VIRTUAL, nr=0), path=str(tmp_path))
    assert compute_identifier(chip) == "k10temp-virtual-0"


def test_compute_identifier_falls_back_to_directory_name(tmp_path):
    device = tmp_path / "hwmon9"
    device.mkdir()
    chip = Chip(bus=Bus(type=0, nr=0), path=str(device))
    assert compute_identifier(chip) == "hwmon9"


def test_find_platform_without_platform():
    device_path = (
        "/sys/devices/pci0000:00/0000:00:0e.0/pci10000:e0/10000:e0:06.0/"
        "10000:e1:00.0/nvme/nvme0/hwmon3"
    )
    assert find_platform(device_path) == ""


def test_find_platform_with_platform():
    device_path = "/sys/devices/platform/{}/hwmon/hwmon1"
    assert find_platform(device_path) == device_path


def test_get_label_from_file(tmp_path):
    (tmp_path / "fan1_label").write_text("CPU Fan\n")
    assert get_label(str(tmp_path), "fan1") == "CPU Fan"


def test_get_label_fallback(tmp_path):
    device = tmp_path / "hwmon2"
    device.mkdir()
    assert get_label(str(device), "temp1") == "hwmon2/temp1"


def make_chip(path):
    return Chip(
        prefix="it8686",
        addr=0xA40,
        bus=Bus(type=BusType.ISA, nr=0),
        path=path,
        features=[
            Feature(
                "fan1",
                FeatureType.FAN,
                [SubFeature("fan1_input", SubFeatureType.FAN_INPUT, 1200.0)],
            ),
            Feature(
                "fanX",
                FeatureType.FAN,
                [SubFeature("fanX_input", SubFeatureType.FAN_INPUT, 900.0)],
            ),
            Feature(
                "fan3",
                FeatureType.FAN,
                [
                    SubFeature("fan3_input", SubFeatureType.FAN_INPUT, 800.0),
                    SubFeature("fan3_min", SubFeatureType.FAN_MIN, 20.0),
                    SubFeature("fan3_max", SubFeatureType.FAN_MAX, 200.0),
                ],
            ),
            Feature("fan4", FeatureType.FAN, [SubFeature("fan4_min", SubFeatureType.FAN_MIN, 1.0)]),
            Feature(
                "temp1",
                FeatureType.TEMP,
                [
                    SubFeature("temp1_input", SubFeatureType.TEMP_INPUT, 45000.0),
                    SubFeature("temp1_max", SubFeatureType.TEMP_MAX, 80000.0),
                ],
            ),
            Feature("temp2", FeatureType.TEMP, [SubFeature("temp2_max", SubFeatureType.TEMP_MAX, 1.0)]),
        ],
    )


def test_get_fans(tmp_path):
    device = tmp_path / "hwmon1"
    device.mkdir()
    (device / "fan3_label").write_text("Rear\n")
    fan_list = get_fans(make_chip(str(device)))

    assert [fan.label for fan in fan_list] == ["hwmon1/fan1", "Rear"]
    first, second = fan_list
    assert first.index == 1
    assert first.rpm_avg == 1200.0
    assert first.config.min_pwm == 0
    assert first.config.max_pwm == 255
    assert first.config.hwmon.rpm_input_path == f"{device}/fan1_input"
    assert first.config.hwmon.pwm_path == f"{device}/pwm1"
    assert first.config.hwmon.pwm_enable_path == f"{device}/pwm1_enable"
    assert second.index == 2
    assert second.config.hwmon.rpm_channel == 3
    assert (second.config.min_pwm, second.config.max_pwm) == (20, 200)


def test_get_temp_sensors(tmp_path):
    device = tmp_path / "hwmon1"
    device.mkdir()
    sensor_map = get_temp_sensors(make_chip(str(device)))

    assert list(sensor_map) == [1]
    sensor = sensor_map[1]
    assert sensor.label == "hwmon1/temp1"
    assert sensor.input_path == f"{device}/temp1_input"
    assert sensor.maximum == 80000
    assert sensor.minimum == -1
    assert sensor.moving_avg == 45000.0


def test_build_controllers_skips_empty_chips(tmp_path):
    device = tmp_path / "hwmon1"
    device.mkdir()
    empty = Chip(prefix="empty", path=str(tmp_path / "hwmon0"))
    controllers = build_controllers([empty, make_chip(str(device))])

    assert len(controllers) == 1
    controller = controllers[0]
    assert controller.name == "it8686-isa-0a40"
    assert controller.platform == "it8686-isa-0a40"
    assert controller.path == str(device)
    assert len(controller.fans) == 2
    assert list(controller.sensors) == [1]


def test_set_fan_config_paths():
    config = HwMonFanConfig(rpm_channel=2, pwm_channel=3, sysfs_path="/sys/hwmon1")
    set_fan_config_paths(config)
    assert config.rpm_input_path == "/sys/hwmon1/fan2_input"
    assert config.pwm_path == "/sys/hwmon1/pwm3"
    assert config.pwm_enable_path == "/sys/hwmon1/pwm3_enable"


def full_config(pwm_channel):
    return HwMonFanConfig(
        platform="platform",
        index=1,
        rpm_channel=2,
        pwm_channel=pwm_channel,
        sysfs_path="/sys/hwmon1",
        rpm_input_path="/sys/hwmon1/fan2_input",
        pwm_path=f"/sys/hwmon1/pwm{pwm_channel}",
        pwm_enable_path=f"/sys/hwmon1/pwm{pwm_channel}_enable",
    )


DETECTED = [HwMonFanConfig(index=1, rpm_channel=2, pwm_channel=2, sysfs_path="/sys/hwmon1")]


@pytest.mark.parametrize(
    "detected, controller_platform, wanted, expected, error",
    [
        (DETECTED, "", HwMonFanConfig(index=1), full_config(2), None),
        (DETECTED, "", HwMonFanConfig(rpm_channel=2), full_config(2), None),
        (DETECTED, "", HwMonFanConfig(rpm_channel=2, pwm_channel=3), full_config(3), None),
        ([], "", HwMonFanConfig(index=1), None, "no hwmon fan matched fan config"),
        ([HwMonFanConfig(index=2)], "", HwMonFanConfig(index=1), None,
         "no hwmon fan matched fan config"),
        ([HwMonFanConfig(index=1)], "abc", HwMonFanConfig(index=1), None,
         "no hwmon fan matched fan config"),
    ],
    ids=[
        "index config",
        "channel config",
        "pwm channel config",
        "no hwmon fans",
        "no matching index",
        "no matching platform",
    ],
)
def test_update_fan_config_from_hwmon_controllers(
    detected, controller_platform, wanted, expected, error
):
    fan_list = [
        HwMonFan(config=FanConfig(hwmon=HwMonFanConfig(**vars(c)))) for c in detected
    ]
    controllers = [HwMonController(platform=controller_platform or "platform", fans=fan_list)]
    wanted = HwMonFanConfig(**vars(wanted))
    if not wanted.platform:
        wanted.platform = "platform"
    config = FanConfig(hwmon=wanted)

    if error:
        with pytest.raises(ValueError, match=error):
            update_fan_config_from_hwmon_controllers(controllers, config)
    else:
        update_fan_config_from_hwmon_controllers(controllers, config)
        assert config.hwmon == expected


def test_update_fan_config_platform_is_case_insensitive():
    fan = HwMonFan(config=FanConfig(hwmon=HwMonFanConfig(**vars(DETECTED[0]))))
    controllers = [HwMonController(platform="NCT6798-isa-0290", fans=[fan])]
    config = FanConfig(hwmon=HwMonFanConfig(platform="nct6798", index=1))
    update_fan_config_from_hwmon_controllers(controllers, config)
    assert config.hwmon.pwm_path == "/sys/hwmon1/pwm2"


def test_update_fan_config_invalid_platform_pattern():
    fan = HwMonFan(config=FanConfig(hwmon=HwMonFanConfig(**vars(DETECTED[0]))))
    controllers = [HwMonController(platform="platform", fans=[fan])]
    config = FanConfig(id="cpu", hwmon=HwMonFanConfig(platform="(", index=1))
    with pytest.raises(ValueError, match="failed to match platform regex of cpu"):
        update_fan_config_from_hwmon_controllers(controllers, config)