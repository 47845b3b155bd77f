[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pagedstore"
version = "0.1.0"
description = "Paged file storage with an LRU buffer pool, fixed-size record files, variable-length attribute storage and filtered scans"
requires-python = ">=3.10"
dependencies = []
keywords = ["database", "storage", "paged file", "buffer pool", "record manager"]
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
    "Topic :: Database :: Database Engines/Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["pagedstore"]

[tool.pytest.ini_options]
addopts = "-ra"
