[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "golink"
version = "0.1.0"
description = "URL shortener building blocks: short-link generation, redirection, caching and change-data-capture sync"
requires-python = ">=3.10"
keywords = [
    "url-shortener",
    "short-link",
    "snowflake",
    "base62",
    "redis",
    "cassandra",
    "scylladb",
    "mongodb",
    "cdc",
    "flask",
]
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
    "Framework :: Flask",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]
dependencies = [
    "pyyaml",
    "python-dotenv",
    "redis",
    "flask",
    "pymongo",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["golink"]

[tool.hatch.build.targets.sdist]
include = [
    "golink",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
