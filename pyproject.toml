[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "connpool"
version = "0.3.6"
description = "A generic asyncio connection pool with background cleanup of idle and invalid connections"
requires-python = ">=3.11"
dependencies = []
keywords = ["asyncio", "connection-pool", "pool", "tcp", "generic"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
connpool-db-example = "connpool.db_example:main"
connpool-echo-example = "connpool.echo_example:main"
connpool-cleanup-example = "connpool.cleanup_example:main"

[tool.hatch.build.targets.wheel]
packages = ["connpool"]

[tool.pytest.ini_options]
addopts = "-ra"
