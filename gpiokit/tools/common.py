"""Helpers shared by the command-line tools."""

from __future__ import annotations

import os
import sys
from typing import NoReturn

from ..core import version_string


def get_progname() -> str:
    """Return the name the running program was started as."""
    if sys.argv and sys.argv[0]:
        return os.path.basename(sys.argv[0])
    return "gpiokit"


def die(message: str) -> NoReturn:
    """Print an error message to stderr and exit with status 1."""
    print(f"{get_progname()}: {message}", file=sys.stderr)
    raise SystemExit(1)


def die_perror(message: str, error: BaseException) -> NoReturn:
    """Like die(), with the reason taken from ``error`` appended."""
    reason = getattr(error, "strerror", None) or str(error)
    print(f"{get_progname()}: {message}: {reason}", file=sys.stderr)
    raise SystemExit(1)


def version_text(prog: str) -> str:
    """Return the version banner for ``prog``."""
    return f"{prog} (gpiokit) v{version_string()}"


def print_version() -> None:
    """Write the version banner of the running program to stdout."""
    banner = version_text(get_progname())
    stream = sys.stdout
    stream.write(banner)
    stream.write("\n")
    stream.flush()