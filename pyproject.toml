[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "hidremap"
version = "0.1.0"
description = "HID report remapping engine: usage mappings, layers, tap/hold, macros and stack expressions"
requires-python = ">=3.10"
dependencies = []
keywords = ["hid", "usb", "remapper", "keyboard", "mouse", "gamepad", "midi"]
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
    "Topic :: Software Development :: Embedded Systems",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["hidremap"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
