[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "beadwork"
version = "0.1.0"
description = "A lightweight issue tracker library that stores issues, dependencies, labels and comments as files in a tree."
requires-python = ">=3.10"
dependencies = []
keywords = ["issues", "bug-tracking", "tasks", "dependencies", "tracker"]
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
    "Topic :: Software Development :: Bug Tracking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["beadwork"]

[tool.pytest.ini_options]
addopts = "-ra"
