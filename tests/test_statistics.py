import pytest

from fanpilot.curves import CurveConfig, LinearCurveConfig, new_speed_curve
from fanpilot.fans import FanConfig, FileFan, FileFanConfig, HwMonFan, HwMonFanConfig
from fanpilot.sensors import FileSensor, FileSensorConfig, SensorConfig, VirtualSensor
from fanpilot.statistics import (
    GAUGE,
    CurveCollector,
    FanCollector,
    SensorCollector,
    render_metrics,
)


@pytest.fixture
def file_fan(tmp_path):
    path = tmp_path / "pwm"
    path.write_text("100")
    return FileFan(config=FanConfig(id="file_fan", file=FileFanConfig(path=str(path))))


@pytest.fixture
def hwmon_fan(tmp_path):
    (tmp_path / "pwm1").write_text("80")
    (tmp_path / "fan1_input").write_text("1200")
    config = HwMonFanConfig(
        pwm_path=str(tmp_path / "pwm1"),
        rpm_input_path=str(tmp_path / "fan1_input"),
        pwm_enable_path=str(tmp_path / "pwm1_enable"),
    )
    return HwMonFan(config=FanConfig(id="hw_fan", hwmon=config))


def test_fan_collector_reports_pwm_only_without_rpm_sensor(file_fan):
    collector = FanCollector([file_fan])

    metrics = list(collector.collect())

    assert [m.desc for m in metrics] == [collector.pwm]
    assert metrics[0].value == 100.0
    assert metrics[0].labels == {"id": "file_fan"}
    assert metrics[0].value_type == GAUGE


def test_fan_collector_reports_rpm_when_supported(hwmon_fan):
    collector = FanCollector([hwmon_fan])

    metrics = list(collector.collect())

    assert [m.desc for m in metrics] == [collector.pwm, collector.rpm]
    assert [m.value for m in metrics] == [80.0, 1200.0]


def test_fan_collector_unreadable_fan_reports_zero(tmp_path):
    fan = FileFan(
        config=FanConfig(id="gone", file=FileFanConfig(path=str(tmp_path / "missing")))
    )
    metrics = list(FanCollector([fan]).collect())

    assert [m.value for m in metrics] == [0.0]


def test_fan_collector_describe_contains_help_texts(file_fan):
    descs = FanCollector([file_fan]).describe()

    assert [d.help for d in descs] == [
        "Current PWM value of the fan",
        "Current RPM value of the fan",
    ]
    assert all(d.label_names == ("id",) for d in descs)


def test_curve_collector_evaluates_curves():
    sensors = {"cpu": VirtualSensor(name="cpu", value=60000.0)}
    curve = new_speed_curve(
        CurveConfig(id="curve", linear=LinearCurveConfig(sensor="cpu", min_temp=40, max_temp=80)),
        sensors,
        {},
    )
    collector = CurveCollector([curve])

    metrics = list(collector.collect())

    assert len(metrics) == 1
    assert metrics[0].value == 127.0
    assert metrics[0].labels == {"id": "curve"}
    assert collector.describe() == [collector.value]


def test_sensor_collector_reads_values(tmp_path):
    missing = FileSensor(
        config=SensorConfig(id="file", file=FileSensorConfig(path=str(tmp_path / "none")))
    )
    virtual = VirtualSensor(name="virt", value=42000.0)
    metrics = list(SensorCollector([virtual, missing]).collect())

    assert [(m.labels["id"], m.value) for m in metrics] == [("virt", 42000.0), ("file", 0.0)]


def test_render_metrics_text_format(file_fan):
    sensor = VirtualSensor(name="virt", value=42000.0)
    fan_collector = FanCollector([file_fan])
    sensor_collector = SensorCollector([sensor])

    text = render_metrics([fan_collector, sensor_collector])
    lines = text.splitlines()

    pwm_name = fan_collector.pwm.fq_name
    sensor_name = sensor_collector.value.fq_name
    assert lines == [
        f"# HELP {pwm_name} Current PWM value of the fan",
        f"# TYPE {pwm_name} gauge",
        f'{pwm_name}{{id="file_fan"}} 100',
        f"# HELP {sensor_name} Current value of the sensor",
        f"# TYPE {sensor_name} gauge",
        f'{sensor_name}{{id="virt"}} 42000',
    ]
    assert text.endswith("\n")


def test_render_metrics_escapes_label_values():
    sensor = VirtualSensor(name='a"b\\c', value=1.5)
    collector = SensorCollector([sensor])

    text = render_metrics([collector])

    assert f'{collector.value.fq_name}{{id="a\\"b\\\\c"}} 1.5' in text.splitlines()


def test_render_metrics_empty():
    assert render_metrics([SensorCollector([])]) == ""


def test_metric_names_share_namespace(file_fan):
    names = [
        FanCollector([file_fan]).pwm.fq_name,
        CurveCollector([]).value.fq_name,
        SensorCollector([]).value.fq_name,
    ]
    prefixes = {name.split("_")[0] for name in names}
    assert len(prefixes) == 1
    assert [name.split("_", 1)[1] for name in names] == ["fan_pwm", "curve_value", "sensor_value"]