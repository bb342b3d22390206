[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sandboxkit"
version = "0.1.0"
description = "Helpers for verifying sandbox toolchain resources: metrics lookup, spaces, template refs and per-tier expectations"
requires-python = ">=3.10"
dependencies = []
keywords = ["testing", "kubernetes", "openshift", "sandbox", "tiers", "metrics", "prometheus", "e2e"]
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
    "Topic :: Software Development :: Testing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["sandboxkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
