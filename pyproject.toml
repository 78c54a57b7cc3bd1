[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "prxkit"
version = "0.1.0"
description = "Comment-preserving INI files, file helpers, 64-bit string ids, an x86-64 instruction length decoder and byte-pattern scanning utilities"
requires-python = ">=3.10"
keywords = ["ini", "x86-64", "length-disassembler", "pattern-scan", "fnv-1a", "hooking"]
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
    "Topic :: Software Development :: Libraries",
    "Topic :: Software Development :: Disassemblers",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["prxkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
