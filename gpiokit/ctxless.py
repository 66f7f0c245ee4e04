"""One-call helpers that open a chip, act on some of its lines and close it again."""

from __future__ import annotations

import enum
import errno
import math
import os
import select
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from .core import (
    MAX_LINES,
    EventType,
    LineRequestConfig,
    RequestFlag,
    RequestType,
)
from .helpers import (
    chip_open_lookup,
    get_lines,
    line_find,
    request_input,
    request_output,
)

_POLL_MASK = select.POLLIN | select.POLLPRI


class MonitorEvent(enum.IntEnum):
    """Which edges an event monitor watches."""

    RISING_EDGE = 1
    FALLING_EDGE = 2
    BOTH_EDGES = 3


class CallbackEvent(enum.IntEnum):
    """What an event callback is told about."""

    RISING_EDGE = 1
    FALLING_EDGE = 2
    TIMEOUT = 3


class CallbackResult(enum.IntEnum):
    """What an event callback tells the monitor to do next."""

    ERR = -1
    OK = 0
    STOP = 1


class PollResult(enum.IntEnum):
    """Special results of a poll callback; any positive value counts events."""

    STOP = -2
    ERR = -1
    TIMEOUT = 0


@dataclass
class PollFd:
    """A file descriptor watched by a poll callback, and whether it is ready."""

    fd: int
    event: bool = False


PollCallback = Callable[[Sequence[PollFd], Optional[float]], int]
EventCallback = Callable[[CallbackEvent, int, int, int], Optional[int]]

_REQUEST_FOR_EVENT = {
    MonitorEvent.RISING_EDGE: RequestType.EVENT_RISING_EDGE,
    MonitorEvent.FALLING_EDGE: RequestType.EVENT_FALLING_EDGE,
    MonitorEvent.BOTH_EDGES: RequestType.EVENT_BOTH_EDGES,
}


def _check_count(count: int) -> None:
    if count == 0 or count > MAX_LINES:
        raise OSError(errno.EINVAL, os.strerror(errno.EINVAL))


def _flags(active_low: bool) -> RequestFlag:
    return RequestFlag.ACTIVE_LOW if active_low else RequestFlag.NONE


def _timeout_ms(timeout: Optional[float]) -> Optional[int]:
    return None if timeout is None else math.ceil(timeout * 1000)


def _basic_poll(fds: Sequence[PollFd], timeout: Optional[float]) -> int:
    """Wait on the given descriptors and mark the ones that became ready."""
    if not fds or len(fds) > MAX_LINES:
        return PollResult.ERR
    poller = select.poll()
    for pfd in fds:
        poller.register(pfd.fd, _POLL_MASK)
    ready = poller.poll(_timeout_ms(timeout))
    active = {fd for fd, revents in ready if revents}
    if not active:
        return PollResult.TIMEOUT
    for pfd in fds:
        if pfd.fd in active:
            pfd.event = True
    return len(active)


def _should_stop(result: Optional[int]) -> bool:
    if result is None or result == CallbackResult.OK:
        return False
    if result == CallbackResult.STOP:
        return True
    if result == CallbackResult.ERR:
        raise RuntimeError("event callback reported an error")
    return False


def get_value(
    device: str, offset: int, active_low: bool = False, consumer: Optional[str] = None
) -> int:
    """Read the value of one line."""
    return get_value_multiple(device, [offset], active_low, consumer)[0]


def get_value_multiple(
    device: str,
    offsets: Iterable[int],
    active_low: bool = False,
    consumer: Optional[str] = None,
) -> list[int]:
    """Read the values of several lines of one chip at once."""
    offsets = list(offsets)
    _check_count(len(offsets))
    with chip_open_lookup(device) as chip:
        bulk = get_lines(chip, offsets)
        request_input(bulk, consumer, _flags(active_low))
        return bulk.get_values()


def set_value(
    device: str,
    offset: int,
    value: int,
    active_low: bool = False,
    consumer: Optional[str] = None,
    callback: Optional[Callable[[], None]] = None,
) -> None:
    """Drive one line; ``callback`` runs while the value is held."""
    set_value_multiple(device, [offset], [value], active_low, consumer, callback)


def set_value_multiple(
    device: str,
    offsets: Iterable[int],
    values: Iterable[int],
    active_low: bool = False,
    consumer: Optional[str] = None,
    callback: Optional[Callable[[], None]] = None,
) -> None:
    """Drive several lines; ``callback`` runs while the values are held."""
    offsets = list(offsets)
    values = list(values)
    _check_count(len(offsets))
    if len(values) != len(offsets):
        raise ValueError("one value is needed for each offset")
    with chip_open_lookup(device) as chip:
        bulk = get_lines(chip, offsets)
        request_output(bulk, consumer, values, _flags(active_low))
        if callback is not None:
            callback()


def event_loop(
    device: str,
    offset: int,
    active_low: bool = False,
    consumer: Optional[str] = None,
    timeout: Optional[float] = None,
    poll_cb: Optional[PollCallback] = None,
    event_cb: Optional[EventCallback] = None,
) -> None:
    """Watch both edges of one line until a callback stops the loop."""
    event_monitor(
        device,
        MonitorEvent.BOTH_EDGES,
        offset,
        active_low,
        consumer,
        timeout,
        poll_cb,
        event_cb,
    )


def event_loop_multiple(
    device: str,
    offsets: Iterable[int],
    active_low: bool = False,
    consumer: Optional[str] = None,
    timeout: Optional[float] = None,
    poll_cb: Optional[PollCallback] = None,
    event_cb: Optional[EventCallback] = None,
) -> None:
    """Watch both edges of several lines until a callback stops the loop."""
    event_monitor_multiple(
        device,
        MonitorEvent.BOTH_EDGES,
        offsets,
        active_low,
        consumer,
        timeout,
        poll_cb,
        event_cb,
    )


def event_monitor(
    device: str,
    event_type: MonitorEvent,
    offset: int,
    active_low: bool = False,
    consumer: Optional[str] = None,
    timeout: Optional[float] = None,
    poll_cb: Optional[PollCallback] = None,
    event_cb: Optional[EventCallback] = None,
) -> None:
    """Watch the given edges of one line until a callback stops the loop."""
    event_monitor_multiple(
        device, event_type, [offset], active_low, consumer, timeout, poll_cb, event_cb
    )


def event_monitor_multiple(
    device: str,
    event_type: MonitorEvent,
    offsets: Iterable[int],
    active_low: bool = False,
    consumer: Optional[str] = None,
    timeout: Optional[float] = None,
    poll_cb: Optional[PollCallback] = None,
    event_cb: Optional[EventCallback] = None,
) -> None:
    """Watch the given edges of several lines until a callback stops the loop.

    ``poll_cb(fds, timeout)`` marks ready descriptors and returns their count
    or a PollResult. ``event_cb(event, offset, sec, nsec)`` returns a
    CallbackResult; None counts as OK. An ERR result raises RuntimeError.
    """
    offsets = list(offsets)
    _check_count(len(offsets))
    if event_cb is None:
        raise TypeError("an event callback is required")
    monitor = MonitorEvent(event_type)
    poll = poll_cb if poll_cb is not None else _basic_poll

    with chip_open_lookup(device) as chip:
        bulk = get_lines(chip, offsets)
        config = LineRequestConfig(
            _REQUEST_FOR_EVENT[monitor], consumer, _flags(active_low)
        )
        bulk.request(config)
        fds = [PollFd(line.event_fd()) for line in bulk]

        while True:
            for pfd in fds:
                pfd.event = False

            count = poll(fds, timeout)
            if count == PollResult.ERR:
                raise RuntimeError("poll callback reported an error")
            if count == PollResult.STOP:
                return
            if count == PollResult.TIMEOUT:
                if _should_stop(event_cb(CallbackEvent.TIMEOUT, 0, 0, 0)):
                    return
                continue

            for line, pfd in zip(bulk, fds):
                if not pfd.event:
                    continue
                event = line.event_read()
                kind = (
                    CallbackEvent.RISING_EDGE
                    if event.event_type == EventType.RISING_EDGE
                    else CallbackEvent.FALLING_EDGE
                )
                if _should_stop(event_cb(kind, line.offset, event.sec, event.nsec)):
                    return
                count -= 1
                if count == 0:
                    break


def find_line(name: str) -> Optional[tuple[str, int]]:
    """Return ``(chip name, offset)`` of the line called ``name``, or None."""
    try:
        line = line_find(name)
    except OSError as exc:
        if exc.errno == errno.ENOENT:
            return None
        raise
    chip = line.chip
    try:
        return chip.name, line.offset
    finally:
        chip.close()