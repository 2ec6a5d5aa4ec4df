[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "provd"
version = "0.1.0"
description = "Desktop provisioning daemon on a Unix socket, with accessibility and display manager session services"
requires-python = ">=3.10"
keywords = ["provisioning", "daemon", "grpc", "systemd", "accessibility", "gdm", "initial-setup"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: No Input/Output (Daemon)",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Installation/Setup",
]
dependencies = [
    "grpcio",
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
provd = "provd.main:main"

[tool.hatch.build.targets.wheel]
packages = ["provd"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
