[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gpiokit"
version = "1.4.1"
description = "Access GPIO chips and lines through the Linux GPIO character device, with command-line tools"
requires-python = ">=3.10"
dependencies = []
keywords = ["gpio", "linux", "character-device", "embedded", "hardware"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Hardware",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
gpiodetect = "gpiokit.tools.gpiodetect:main"
gpiofind = "gpiokit.tools.gpiofind:main"
gpioinfo = "gpiokit.tools.gpioinfo:main"
gpioset = "gpiokit.tools.gpioset:main"

[tool.hatch.build.targets.wheel]
packages = ["gpiokit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
