"""List all GPIO chips with their labels and numbers of lines."""

from __future__ import annotations

import getopt
import sys
from typing import Optional, Sequence

from ..helpers import iter_chips
from .common import die, die_perror, get_progname, print_version

_SHORTOPTS = "hv"
_LONGOPTS = ["help", "version"]


def _print_help() -> None:
    prog = get_progname()
    print(f"Usage: {prog} [OPTIONS]")
    print("List all GPIO chips, print their labels and number of GPIO lines.")
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

    if rest:
        die(f"unrecognized argument: {rest[0]}")

    try:
        for chip in iter_chips():
            print(f"{chip.name} [{chip.label}] ({chip.num_lines} lines)")
    except OSError as exc:
        die_perror("unable to access GPIO chips", exc)

    return 0


if __name__ == "__main__":
    sys.exit(main())