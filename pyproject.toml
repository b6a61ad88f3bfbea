[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "devlb"
version = "0.1.0"
description = "Command-line client, protocol, configuration and state handling for a local development TCP reverse proxy"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = ["proxy", "reverse-proxy", "tcp", "development", "worktree", "cli"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Proxy Servers",
    "Topic :: Software Development",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
devlb = "devlb.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["devlb"]

[tool.pytest.ini_options]
addopts = "-ra"
