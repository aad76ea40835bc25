[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tcprelay"
version = "0.1.0"
description = "A simple TCP proxy with forward and reverse modes, config-file setup and a live terminal dashboard"
requires-python = ">=3.10"
keywords = ["tcp", "proxy", "port-forwarding", "reverse-proxy", "dashboard", "asyncio"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Proxy Servers",
    "Topic :: System :: Networking",
]
dependencies = [
    "rich>=13.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "pytest-asyncio>=0.21",
]

[project.scripts]
tcprelay = "tcprelay.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["tcprelay"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
