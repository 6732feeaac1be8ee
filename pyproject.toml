[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cshell"
version = "0.1.0"
description = "Ground-station tooling for CSP networks: ZMQ proxy, NaCl primitives, firmware image discovery, stdbuf logging and telemetry export"
requires-python = ">=3.10"
keywords = [
    "csp",
    "cubesat",
    "zeromq",
    "nacl",
    "ed25519",
    "curve25519",
    "victoriametrics",
    "telemetry",
    "ground-station",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications",
    "Topic :: Scientific/Engineering :: Astronomy",
    "Topic :: Security :: Cryptography",
]
dependencies = [
    "pyzmq",
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
cshell-zmqproxy = "cshell.zmqproxy:main"

[tool.hatch.build.targets.wheel]
packages = ["cshell"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
