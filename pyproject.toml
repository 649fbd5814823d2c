[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "freefall"
version = "0.1.0"
description = "Free-fall detection over an in-process I2C bus, against a simulated ICM-42670-P IMU that replays recorded CSV data"
requires-python = ">=3.10"
dependencies = []
keywords = ["free fall", "imu", "accelerometer", "i2c", "simulation"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Physics",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
freefall = "freefall.app:main"

[tool.hatch.build.targets.wheel]
packages = ["freefall"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
