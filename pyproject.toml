[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kaltrack"
version = "0.1.0"
description = "Building blocks for Kalman-filter track fitting: detector layers, material effects, track frames, transport and helix fits"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = ["kalman filter", "tracking", "helix", "particle physics", "multiple scattering", "energy loss"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Physics",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["kaltrack"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
