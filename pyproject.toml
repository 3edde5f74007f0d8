[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "transporter"
version = "0.1.0"
description = "Adaptors for copying, tailing and writing documents in Postgres, RabbitMQ and RethinkDB"
requires-python = ">=3.10"
dependencies = [
    "pika",
    "packaging",
]
keywords = [
    "etl",
    "postgres",
    "rabbitmq",
    "rethinkdb",
    "replication",
    "logical-decoding",
    "changefeed",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
transporter = "transporter.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["transporter"]

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
