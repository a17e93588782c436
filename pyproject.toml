[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "relayutil"
version = "0.58.1"
description = "Building blocks for reverse proxies and tunnels: virtual-host routing, TLS server-name muxing, connection wrappers, rate limiting, backoff and metrics"
requires-python = ">=3.10"
dependencies = []
keywords = ["proxy", "vhost", "tunnel", "sni", "rate-limit", "backoff", "metrics"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Proxy Servers",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["relayutil"]

[tool.pytest.ini_options]
addopts = "-ra"
