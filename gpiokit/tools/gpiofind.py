"""Find a GPIO line by name and print its chip and offset."""

from __future__ import annotations

import getopt
import sys
from typing import Optional, Sequence

from ..ctxless import find_line
from .common import die, die_perror, get_progname, print_version

_SHORTOPTS = "hv"
_LONGOPTS = ["help", "version"]


def _print_help() -> None:
    prog = get_progname()
    print(f"Usage: {prog} [OPTIONS] <name>")
    print(
        "Find a GPIO line by name. The output of this command can be used "
        "as input for gpioget/set."
    )
    print()
    print("Options:")
    print("  -h, --help:\t\tdisplay this message and exit")
    print("  -v, --version:\tdisplay the version and exit")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command; return the exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    prog = get_progname()
    try:
        opts, rest = getopt.getopt(args, _SHORTOPTS, _LONGOPTS)
    except getopt.GetoptError as exc:
        print(f"{prog}: {exc}", file=sys.stderr)
        die(f"try {prog} --help")

    for opt, _ in opts:
        if opt in ("-h", "--help"):
            _print_help()
            return 0
        if opt in ("-v", "--version"):
            print_version()
            return 0

    if len(rest) != 1:
        die("exactly one GPIO line name must be specified")

    try:
        found = find_line(rest[0])
    except OSError as exc:
        die_perror("error performing the line lookup", exc)

    if found is None:
        return 1

    chip_name, offset = found
    print(f"{chip_name} {offset}")
    return 0


if __name__ == "__main__":
    sys.exit(main())