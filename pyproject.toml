[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "garagemetrics"
version = "0.1.0"
description = "Metrics collection and republishing service, with a JSON log formatter, a Datadog encoder and an RSA key generator"
requires-python = ">=3.10"
keywords = ["metrics", "expvar", "prometheus", "datadog", "logging", "monitoring"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Topic :: System :: Logging",
]
dependencies = [
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
garagemetrics = "garagemetrics.service:main"
garagemetrics-logfmt = "garagemetrics.logfmt:main"

[tool.hatch.build.targets.wheel]
packages = ["garagemetrics"]

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
