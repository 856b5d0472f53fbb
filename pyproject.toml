[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "aivenkit"
version = "0.1.0"
description = "Helpers for managing Aiven resources: user config conversion, service state waiting, Kafka caches and VPC peering"
requires-python = ">=3.10"
dependencies = []
keywords = ["aiven", "kafka", "vpc", "peering", "user-config", "infrastructure"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["aivenkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
