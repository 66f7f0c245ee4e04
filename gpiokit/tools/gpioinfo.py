"""Print information about all lines of GPIO chips."""

from __future__ import annotations

import getopt
import sys
from typing import Iterable, Optional, Sequence

from ..core import ActiveState, Direction
from ..helpers import chip_open_lookup, iter_chips, iter_lines
from .common import die, die_perror, get_progname, print_version

_SHORTOPTS = "hv"
_LONGOPTS = ["help", "version"]

_FLAGS = (
    ("used", "is_used"),
    ("open-drain", "is_open_drain"),
    ("open-source", "is_open_source"),
)


def _print_help() -> None:
    prog = get_progname()
    print(f"Usage: {prog} [OPTIONS] <gpiochip1> ...")
    print(
        "Print information about all lines of the specified GPIO chip(s) "
        "(or all gpiochips if none are specified)."
    )
    print()
    print("Options:")
    print("  -h, --help:\t\tdisplay this message and exit")
    print("  -v, --version:\tdisplay the version and exit")


class _Columns:
    """Right-aligns fields until one overflows its width, then stops padding."""

    def __init__(self) -> None:
        self.overflow = False

    def field(self, text: str, width: int) -> str:
        if self.overflow or len(text) > width:
            self.overflow = True
            return text
        return text.rjust(width)


def describe_line(
    offset: int,
    name: Optional[str],
    consumer: Optional[str],
    direction: Direction,
    active_state: ActiveState,
    flags: Iterable[str],
) -> str:
    """Return the report line for one GPIO line, without a trailing newline."""
    cols = _Columns()
    parts = [
        "\tline ",
        cols.field(str(offset), 3),
        ": ",
        cols.field(f'"{name}"' if name else "unnamed", 12),
        " ",
        cols.field(f'"{consumer}"' if consumer else "unused", 12),
        " ",
        cols.field("input " if direction == Direction.INPUT else "output ", 8),
        cols.field(
            "active-low " if active_state == ActiveState.LOW else "active-high ", 13
        ),
    ]
    flag_names = list(flags)
    if flag_names:
        parts.append(f"[{' '.join(flag_names)}]")
    return "".join(parts)


def list_lines(chip) -> None:
    """Print a header for ``chip`` and a report line for each of its lines."""
    lines = list(iter_lines(chip))
    print(f"{chip.name} - {chip.num_lines} lines:")
    for line in lines:
        flags = [label for label, attr in _FLAGS if getattr(line, attr)]
        print(
            describe_line(
                line.offset,
                line.name,
                line.consumer,
                line.direction,
                line.active_state,
                flags,
            )
        )


def _list_or_die(chip) -> None:
    try:
        list_lines(chip)
    except OSError as exc:
        die_perror("error creating line iterator", exc)


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

    if not rest:
        chips = iter_chips()
        while True:
            try:
                chip = next(chips)
            except StopIteration:
                break
            except OSError as exc:
                die_perror("error accessing GPIO chips", exc)
            _list_or_die(chip)
        return 0

    for descr in rest:
        try:
            chip = chip_open_lookup(descr)
        except OSError as exc:
            die_perror(f"looking up chip {descr}", exc)
        with chip:
            _list_or_die(chip)

    return 0


if __name__ == "__main__":
    sys.exit(main())