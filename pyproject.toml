[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fanpilot"
version = "0.8.0"
description = "Fan speed control building blocks: hwmon discovery, sensors, fans, speed curves, PID loops and curve storage"
requires-python = ">=3.10"
dependencies = []
keywords = ["fan", "hwmon", "pwm", "sensors", "temperature", "pid", "cooling", "metrics"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Hardware",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["fanpilot"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
