"""Ways to open chips, look up lines and request them, built on the core API."""

from __future__ import annotations

import errno
import os
from typing import Iterable, Iterator, Optional, Sequence, Union

from .core import (
    Chip,
    Line,
    LineBulk,
    LineRequestConfig,
    RequestFlag,
    RequestType,
)

_DEV_DIR = "/dev"
_CHIP_PREFIX = "gpiochip"

Lines = Union[Line, LineBulk, Iterable[Line]]


def _enoent() -> OSError:
    return OSError(errno.ENOENT, os.strerror(errno.ENOENT))


def _is_uint(text: str) -> bool:
    return all(char in "0123456789" for char in text)


def chip_open_by_name(name: str) -> Chip:
    """Open the chip called ``name`` under /dev."""
    return Chip(f"{_DEV_DIR}/{name}")


def chip_open_by_number(num: int) -> Chip:
    """Open /dev/gpiochip<num>."""
    return Chip(f"{_DEV_DIR}/{_CHIP_PREFIX}{num}")


def _open_all_chips() -> list[Chip]:
    names = sorted(
        entry for entry in os.listdir(_DEV_DIR) if entry.startswith(_CHIP_PREFIX)
    )
    chips: list[Chip] = []
    try:
        for name in names:
            chips.append(chip_open_by_name(name))
    except BaseException:
        for chip in chips:
            chip.close()
        raise
    return chips


def iter_chips() -> Iterator[Chip]:
    """Yield every GPIO chip in the system, sorted by device name.

    All chips are opened before the first is yielded; each one is closed
    as soon as iteration moves past it, and the rest when iteration ends.
    """
    chips = _open_all_chips()
    try:
        for chip in chips:
            yield chip
            chip.close()
    finally:
        for chip in chips:
            chip.close()


def chip_open_by_label(label: str) -> Chip:
    """Open the first chip whose label is ``label``."""
    found: Optional[Chip] = None
    for chip in _open_all_chips():
        if found is None and chip.label == label:
            found = chip
        else:
            chip.close()
    if found is None:
        raise _enoent()
    return found


def chip_open_lookup(descr: str) -> Chip:
    """Open a chip given by number, label, name or path."""
    if _is_uint(descr):
        return chip_open_by_number(int(descr or "0"))
    try:
        return chip_open_by_label(descr)
    except OSError:
        if descr.startswith(f"{_DEV_DIR}/"):
            return Chip(descr)
        return chip_open_by_name(descr)


def iter_lines(chip) -> Iterator[Line]:
    """Iterate over all lines of ``chip``; every line is fetched up front."""
    lines = [chip.get_line(offset) for offset in range(chip.num_lines)]
    return iter(lines)


def get_lines(chip, offsets: Iterable[int]) -> LineBulk:
    """Return the lines of ``chip`` at the given offsets, in that order."""
    return LineBulk(chip.get_line(offset) for offset in offsets)


def get_all_lines(chip) -> LineBulk:
    """Return every line of ``chip``."""
    return LineBulk(iter_lines(chip))


def find_line(chip, name: str) -> Line:
    """Return the first line of ``chip`` named ``name``."""
    for line in iter_lines(chip):
        if line.name is not None and line.name == name:
            return line
    raise _enoent()


def find_lines(chip, names: Iterable[str]) -> LineBulk:
    """Return the lines of ``chip`` with the given names, in that order."""
    return LineBulk(find_line(chip, name) for name in names)


def _as_bulk(lines: Lines) -> LineBulk:
    if isinstance(lines, LineBulk):
        return lines
    if isinstance(lines, Line):
        return LineBulk([lines])
    return LineBulk(lines)


def _request(
    lines: Lines,
    request_type: RequestType,
    consumer: Optional[str],
    flags: RequestFlag,
    default_vals: Optional[Sequence[int]] = None,
) -> None:
    config = LineRequestConfig(request_type, consumer, RequestFlag(flags))
    _as_bulk(lines).request(config, default_vals)


def request_input(
    lines: Lines, consumer: Optional[str] = None, flags: RequestFlag = RequestFlag.NONE
) -> None:
    """Request one line or a group of lines as inputs."""
    _request(lines, RequestType.DIRECTION_INPUT, consumer, flags)


def request_output(
    lines: Lines,
    consumer: Optional[str] = None,
    default_vals: Union[int, Sequence[int], None] = None,
    flags: RequestFlag = RequestFlag.NONE,
) -> None:
    """Request one line or a group of lines as outputs with initial values."""
    if isinstance(default_vals, int):
        default_vals = [default_vals]
    _request(lines, RequestType.DIRECTION_OUTPUT, consumer, flags, default_vals)


def request_rising_edge_events(
    lines: Lines, consumer: Optional[str] = None, flags: RequestFlag = RequestFlag.NONE
) -> None:
    """Request rising edge events on one line or a group of lines."""
    _request(lines, RequestType.EVENT_RISING_EDGE, consumer, flags)


def request_falling_edge_events(
    lines: Lines, consumer: Optional[str] = None, flags: RequestFlag = RequestFlag.NONE
) -> None:
    """Request falling edge events on one line or a group of lines."""
    _request(lines, RequestType.EVENT_FALLING_EDGE, consumer, flags)


def request_both_edges_events(
    lines: Lines, consumer: Optional[str] = None, flags: RequestFlag = RequestFlag.NONE
) -> None:
    """Request events on both edges on one line or a group of lines."""
    _request(lines, RequestType.EVENT_BOTH_EDGES, consumer, flags)


def line_get(device: str, offset: int) -> Line:
    """Open the chip given by ``device`` and return its line at ``offset``.

    The chip stays open; close it through ``line.chip``.
    """
    chip = chip_open_lookup(device)
    try:
        return chip.get_line(offset)
    except BaseException:
        chip.close()
        raise


def line_find(name: str) -> Line:
    """Find a line by name across all chips; its chip is left open."""
    chips = _open_all_chips()
    found: Optional[Line] = None
    try:
        for chip in chips:
            try:
                found = find_line(chip, name)
            except OSError as exc:
                if exc.errno != errno.ENOENT:
                    raise
                continue
            break
    finally:
        for chip in chips:
            if found is None or chip is not found.chip:
                chip.close()
    if found is None:
        raise _enoent()
    return found