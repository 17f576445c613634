[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rcnxbridge"
version = "0.1.0"
description = "DUML packet tools, a stick-to-gamepad translator and a serial controller simulator for DJI RC-Nx remote controllers"
requires-python = ">=3.10"
keywords = ["dji", "duml", "rc-n1", "remote controller", "gamepad", "serial", "simulator"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Topic :: Terminals :: Serial",
]
dependencies = [
    "pyserial>=3.5",
]

[project.optional-dependencies]
test = [
    "pytest>=7",
]

[project.scripts]
rcnxbridge-simulator = "rcnxbridge.simulator:main"

[tool.hatch.build.targets.wheel]
packages = ["rcnxbridge"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
