[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cmdbench"
version = "1.19.0"
description = "A command-line benchmarking tool"
requires-python = ">=3.10"
dependencies = []
keywords = ["benchmark", "timing", "command-line", "performance", "statistics"]
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
    "Topic :: System :: Benchmark",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
cmdbench = "cmdbench.scheduler:main"

[tool.hatch.build.targets.wheel]
packages = ["cmdbench"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
