# fanpilot

Building blocks for controlling fan speeds on Linux from temperature
readings. The package turns descriptions of hwmon chips into fans and
temperature sensors, reads sensor values from hwmon files, plain files or
commands, maps temperatures to PWM values through speed curves, stores
measured fan curves on disk and produces metrics.

It has no runtime dependencies outside the standard library.

## Modules

- `fanpilot.sensors`: `SensorConfig` (with `HwMonSensorConfig`,
  `FileSensorConfig` or `CmdSensorConfig`) and the sensors `HwmonSensor`,
  `FileSensor`, `CmdSensor` and `VirtualSensor`. `new_sensor(config)` builds
  the sensor matching the configuration and raises `ValueError` when none is
  configured. Every sensor has `read_value()`, an `id` and a `moving_avg`.
  A `FileSensor` whose file cannot be read warns and returns `0.0`.
- `fanpilot.monitor`: `update_sensor(sensor, window_size)` reads a sensor once
  and folds the value into its simple moving average.
  `SensorMonitor(sensor, polling_rate, window_size).run(stop_event)` does this
  every `polling_rate` seconds until the `threading.Event` is set, printing a
  warning for failed readings.
- `fanpilot.fans`: `FanConfig` and the fans `HwMonFan`, `FileFan` and
  `CmdFan`, created with `new_fan(config)`. Fans offer `read_pwm()`,
  `write_pwm(pwm)`, `read_rpm()`, `read_pwm_enabled()`,
  `write_pwm_enabled(mode)` (a `ControlMode`), `is_pwm_auto()`,
  `supports(feature)` (a `FeatureFlag`), the min/start/max PWM getters and
  setters, and `attach_fan_curve_data(curve_data)`.
  `compute_pwm_boundaries(fan)` returns the start and maximum PWM derived from
  a fan's curve data.
- `fanpilot.curves`: `LinearSpeedCurve`, `PidSpeedCurve` and
  `FunctionSpeedCurve`, built from a `CurveConfig` with
  `new_speed_curve(config, sensors, curves)`, where `sensors` and `curves` map
  ids to objects. `evaluate()` returns a value in `0..255`. Linear curves use a
  sensor's moving average (in milli-degrees) with min/max temperatures or with
  steps; PID curves use a fresh reading; function curves combine other curves
  by `FunctionType`: sum, difference, delta, minimum, maximum or average.
- `fanpilot.hwmon`: `Chip`, `Feature`, `SubFeature` and `Bus` describe
  detected chips. `compute_identifier(chip)`, `find_platform(path)`,
  `get_label(path, feature)`, `get_fans(chip)`, `get_temp_sensors(chip)` and
  `build_controllers(chips)` turn them into `HwMonController` objects.
  `update_fan_config_from_hwmon_controllers(controllers, config)` fills in the
  index, channels and sysfs paths of a configured fan, raising `ValueError`
  when no fan matches.
- `fanpilot.persistence`: `Persistence(db_path)` saves, loads and deletes fan
  curve data (`save_fan_pwm_data`, `load_fan_pwm_data`,
  `delete_fan_pwm_data`) and PWM maps (`save_fan_pwm_map`, `load_fan_pwm_map`,
  `delete_fan_pwm_map`) in a single SQLite file. Loading a missing entry
  raises `KeyError`; corrupt data is deleted and loads as `None`.
- `fanpilot.statistics`: `FanCollector`, `CurveCollector` and
  `SensorCollector` yield `Metric` samples (`fanpilot_fan_pwm`,
  `fanpilot_fan_rpm`, `fanpilot_curve_value`, `fanpilot_sensor_value`, each
  labelled by `id`). `render_metrics(collectors)` renders them in the
  Prometheus text exposition format.
- `fanpilot.mathutil`: interpolation (`calculate_interpolated_curve_value`,
  `interpolate_linearly`), `find_closest`, `extract_keys_with_distinct_values`,
  averages and clamping, and `RollingWindow`.
- `fanpilot.pid`: `PidLoop(p, i, d)`, whose `loop(target, measured)` measures
  the time step between calls.
- `fanpilot.fileutil`: `read_int_from_file`, `write_int_to_file`,
  `expand_home`, `find_files_matching`, `check_file_permissions_for_execution`
  and `safe_cmd_execution`.
- `fanpilot.ui`: console messages (`info`, `warning`, `error`, `debug` when
  enabled with `set_debug_enabled`, ...) printed to standard output with a
  level prefix, and desktop notifications through `notify-send`. `fatal`
  notifies, prints and raises `SystemExit(1)`.

## Examples

Interpolating a curve given as steps:

```python
from fanpilot.mathutil import calculate_interpolated_curve_value

steps = {0: 0.0, 100: 100.0, 1000: 1000.0}
calculate_interpolated_curve_value(steps, "linear", 100.0)   # 100.0
calculate_interpolated_curve_value(steps, "linear", 2000.0)  # 1000.0
```

Keeping a rolling window of readings:

```python
from fanpilot.mathutil import RollingWindow

window = RollingWindow(5)
window.fill(40.0)
window.append(50.0)
window.average()  # 42.0
window.maximum()  # 50.0
```

Driving a PID loop (the first call only records the time and returns 0):

```python
from fanpilot.pid import PidLoop

loop = PidLoop(-0.05, 0.0, 0.0)
loop.loop(60.0, 70.0)            # 0.0
output = loop.loop(60.0, 70.0)   # about 0.5
```

A linear curve over a virtual sensor:

```python
from fanpilot.curves import CurveConfig, LinearCurveConfig, new_speed_curve
from fanpilot.sensors import VirtualSensor

sensors = {"cpu": VirtualSensor(name="cpu", value=80000.0)}
config = CurveConfig(id="cpu_curve", linear=LinearCurveConfig(sensor="cpu", min_temp=40, max_temp=80))
curve = new_speed_curve(config, sensors, {})
curve.evaluate()  # 255
```

## Permissions

Commands used by command sensors and fans are only run when the executable
is owned by root, is not writable by others and, unless its group is root,
not writable by its group; see `check_file_permissions_for_execution`.
Commands time out after two seconds. Writing PWM values to hwmon files
usually requires root.

## What the package does not do

- It has no command-line program and no control loop that drives fans from
  curves on its own; an application wires sensors, monitors, curves and fans
  together.
- It does not read configuration files; configurations are built as
  dataclasses.
- It does not detect chips itself: `build_controllers` works on `Chip`
  descriptions supplied by the caller.
- It does not serve metrics over HTTP; `render_metrics` only returns the text.