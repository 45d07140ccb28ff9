[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dqlitekit"
version = "0.1.0"
description = "Building blocks for replicated SQLite clusters: node roles, node stores, TLS proxying and benchmarking helpers"
requires-python = ">=3.10"
keywords = ["sqlite", "raft", "cluster", "replication", "database", "benchmark", "tls", "proxy"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
    "Typing :: Typed",
]
dependencies = [
    "pyyaml>=6.0",
    "psutil>=5.9",
    "cryptography>=41",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "cryptography>=41",
]

[tool.hatch.build.targets.wheel]
packages = ["dqlitekit"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
