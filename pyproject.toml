[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "beautyhttp"
version = "0.1.0"
description = "A small HTTP and WebSocket server and client with path routing, timers and signal handling"
requires-python = ">=3.10"
dependencies = [
    "aiohttp",
]
keywords = ["http", "server", "client", "websocket", "router", "rest", "timer", "swagger"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Framework :: AsyncIO",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
beautyhttp = "beautyhttp.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["beautyhttp"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
