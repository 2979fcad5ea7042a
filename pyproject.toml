[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mdbinder"
version = "0.1.0"
description = "Book configuration loading and chapter preprocessing for markdown-based books"
requires-python = ">=3.11"
keywords = ["markdown", "book", "documentation", "preprocessor", "toml", "configuration"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Text Processing :: Markup :: Markdown",
    "Topic :: Documentation",
]
dependencies = [
    "tomli-w",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["mdbinder"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
