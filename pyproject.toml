[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ambros"
version = "3.0.0"
description = "Command objects that record, inspect, export, chain and replay shell commands kept in a repository"
requires-python = ">=3.10"
keywords = ["shell", "command history", "command chains", "environments", "export", "import"]
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
    "Topic :: System :: Shells",
    "Topic :: Utilities",
]
dependencies = [
    "pyyaml",
    "termcolor",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["ambros"]

[tool.hatch.build.targets.sdist]
include = ["ambros", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
