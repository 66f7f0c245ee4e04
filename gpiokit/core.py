"""Core access to GPIO character devices: chips, lines, requests and events."""

from __future__ import annotations

import enum
import errno
import fcntl
import math
import os
import select
import stat
import struct
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Sequence

VERSION = "1.4.1"

MAX_LINES = 64

_IOC_WRITE = 1
_IOC_READ = 2
_GPIO_MAGIC = 0xB4


def _ioc(direction: int, nr: int, size: int) -> int:
    return (direction << 30) | (size << 16) | (_GPIO_MAGIC << 8) | nr


_CHIPINFO = struct.Struct("32s32sI")
_LINEINFO = struct.Struct("II32s32s")
_HANDLE_REQUEST = struct.Struct(f"{MAX_LINES}II{MAX_LINES}s32sIi")
_EVENT_REQUEST = struct.Struct("III32si")
_HANDLE_DATA = struct.Struct(f"{MAX_LINES}s")
_EVENT_DATA = struct.Struct("@QI0Q")

_GET_CHIPINFO = _ioc(_IOC_READ, 0x01, _CHIPINFO.size)
_GET_LINEINFO = _ioc(_IOC_READ | _IOC_WRITE, 0x02, _LINEINFO.size)
_GET_LINEHANDLE = _ioc(_IOC_READ | _IOC_WRITE, 0x03, _HANDLE_REQUEST.size)
_GET_LINEEVENT = _ioc(_IOC_READ | _IOC_WRITE, 0x04, _EVENT_REQUEST.size)
_GET_LINE_VALUES = _ioc(_IOC_READ | _IOC_WRITE, 0x08, _HANDLE_DATA.size)
_SET_LINE_VALUES = _ioc(_IOC_READ | _IOC_WRITE, 0x09, _HANDLE_DATA.size)

_LINE_FLAG_KERNEL = 1 << 0
_LINE_FLAG_IS_OUT = 1 << 1
_LINE_FLAG_ACTIVE_LOW = 1 << 2
_LINE_FLAG_OPEN_DRAIN = 1 << 3
_LINE_FLAG_OPEN_SOURCE = 1 << 4

_HANDLE_INPUT = 1 << 0
_HANDLE_OUTPUT = 1 << 1
_HANDLE_ACTIVE_LOW = 1 << 2
_HANDLE_OPEN_DRAIN = 1 << 3
_HANDLE_OPEN_SOURCE = 1 << 4

_EVENT_REQ_RISING = 1 << 0
_EVENT_REQ_FALLING = 1 << 1
_EVENT_REQ_BOTH = _EVENT_REQ_RISING | _EVENT_REQ_FALLING

_KERNEL_EVENT_RISING = 0x01

_POLL_MASK = select.POLLIN | select.POLLPRI


def _error(code: int) -> OSError:
    return OSError(code, os.strerror(code))


def _cstr(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode(errors="replace")


def _consumer_bytes(consumer: Optional[str]) -> bytes:
    return consumer.encode()[:31] if consumer else b""


class Direction(enum.IntEnum):
    INPUT = 1
    OUTPUT = 2


class ActiveState(enum.IntEnum):
    HIGH = 1
    LOW = 2


class RequestType(enum.IntEnum):
    DIRECTION_AS_IS = 1
    DIRECTION_INPUT = 2
    DIRECTION_OUTPUT = 3
    EVENT_FALLING_EDGE = 4
    EVENT_RISING_EDGE = 5
    EVENT_BOTH_EDGES = 6

    @property
    def is_direction(self) -> bool:
        return self in (
            RequestType.DIRECTION_AS_IS,
            RequestType.DIRECTION_INPUT,
            RequestType.DIRECTION_OUTPUT,
        )

    @property
    def is_event(self) -> bool:
        return self in (
            RequestType.EVENT_FALLING_EDGE,
            RequestType.EVENT_RISING_EDGE,
            RequestType.EVENT_BOTH_EDGES,
        )


class RequestFlag(enum.IntFlag):
    NONE = 0
    OPEN_DRAIN = 1
    OPEN_SOURCE = 2
    ACTIVE_LOW = 4


class EventType(enum.IntEnum):
    RISING_EDGE = 1
    FALLING_EDGE = 2


@dataclass(frozen=True)
class LineEvent:
    """A single edge event with its kernel timestamp."""

    event_type: EventType
    sec: int
    nsec: int


@dataclass(frozen=True)
class LineRequestConfig:
    """What to request a line for, and how."""

    request_type: RequestType
    consumer: Optional[str] = None
    flags: RequestFlag = RequestFlag.NONE


class _State(enum.Enum):
    FREE = enum.auto()
    REQUESTED_VALUES = enum.auto()
    REQUESTED_EVENTS = enum.auto()


class _FdHandle:
    """A request file descriptor shared by the lines of one request."""

    def __init__(self, fd: int) -> None:
        self.fd = fd
        self.refcount = 0


def version_string() -> str:
    """Return the library version."""
    return VERSION


def read_event_fd(fd: int) -> LineEvent:
    """Read one event from a line event file descriptor."""
    data = os.read(fd, _EVENT_DATA.size)
    if len(data) != _EVENT_DATA.size:
        raise _error(errno.EIO)
    timestamp, event_id = _EVENT_DATA.unpack(data)
    event_type = (
        EventType.RISING_EDGE
        if event_id == _KERNEL_EVENT_RISING
        else EventType.FALLING_EDGE
    )
    return LineEvent(event_type, timestamp // 1_000_000_000, timestamp % 1_000_000_000)


def _check_gpiochip_cdev(path: str) -> None:
    st = os.lstat(path)
    if not stat.S_ISCHR(st.st_mode):
        raise _error(errno.ENOTTY)
    name = os.path.basename(path)
    sysfs = f"/sys/bus/gpio/devices/{name}/dev"
    if not os.access(sysfs, os.R_OK):
        raise _error(errno.ENOTTY)
    devstr = f"{os.major(st.st_rdev)}:{os.minor(st.st_rdev)}"
    with open(sysfs, "rb") as handle:
        content = handle.read(len(devstr)).decode(errors="replace")
    if content != devstr:
        raise _error(errno.ENODEV)


class Chip:
    """An open GPIO chip character device."""

    def __init__(self, path: str) -> None:
        self._fd = -1
        self._lines: dict[int, Line] = {}
        fd = os.open(path, os.O_RDWR | os.O_CLOEXEC)
        try:
            _check_gpiochip_cdev(path)
            buf = bytearray(_CHIPINFO.size)
            fcntl.ioctl(fd, _GET_CHIPINFO, buf, True)
        except BaseException:
            os.close(fd)
            raise
        name, label, lines = _CHIPINFO.unpack(buf)
        self._fd = fd
        self._name = _cstr(name)
        self._label = _cstr(label) or "unknown"
        self._num_lines = lines

    def close(self) -> None:
        """Release every line of this chip and close the device."""
        if self._fd < 0:
            return
        for line in self._lines.values():
            line.release()
        self._lines.clear()
        os.close(self._fd)
        self._fd = -1

    def __enter__(self) -> "Chip":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def fileno(self) -> int:
        return self._fd

    @property
    def name(self) -> str:
        return self._name

    @property
    def label(self) -> str:
        return self._label

    @property
    def num_lines(self) -> int:
        return self._num_lines

    def get_line(self, offset: int) -> "Line":
        """Return the line at ``offset``, refreshing its information."""
        if offset < 0 or offset >= self._num_lines:
            raise _error(errno.EINVAL)
        line = self._lines.get(offset)
        if line is None:
            line = Line(self, offset)
            self._lines[offset] = line
        line.update()
        return line

    def __repr__(self) -> str:
        return f"Chip(name={self._name!r}, label={self._label!r}, lines={self._num_lines})"


class Line:
    """A single GPIO line of a chip."""

    def __init__(self, chip, offset: int) -> None:
        self._chip = chip
        self._offset = offset
        self._direction = Direction.INPUT
        self._active_state = ActiveState.HIGH
        self._used = False
        self._open_drain = False
        self._open_source = False
        self._name = ""
        self._consumer = ""
        self._state = _State.FREE
        self._up_to_date = False
        self._fd_handle: Optional[_FdHandle] = None

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def chip(self):
        return self._chip

    @property
    def name(self) -> Optional[str]:
        return self._name or None

    @property
    def consumer(self) -> Optional[str]:
        return self._consumer or None

    @property
    def direction(self) -> Direction:
        return self._direction

    @property
    def active_state(self) -> ActiveState:
        return self._active_state

    @property
    def is_used(self) -> bool:
        return self._used

    @property
    def is_open_drain(self) -> bool:
        return self._open_drain

    @property
    def is_open_source(self) -> bool:
        return self._open_source

    @property
    def needs_update(self) -> bool:
        return not self._up_to_date

    def update(self) -> None:
        """Re-read the line information from the kernel."""
        buf = bytearray(_LINEINFO.pack(self._offset, 0, b"", b""))
        fcntl.ioctl(self._chip.fileno(), _GET_LINEINFO, buf, True)
        _, flags, name, consumer = _LINEINFO.unpack(buf)
        self._direction = (
            Direction.OUTPUT if flags & _LINE_FLAG_IS_OUT else Direction.INPUT
        )
        self._active_state = (
            ActiveState.LOW if flags & _LINE_FLAG_ACTIVE_LOW else ActiveState.HIGH
        )
        self._used = bool(flags & _LINE_FLAG_KERNEL)
        self._open_drain = bool(flags & _LINE_FLAG_OPEN_DRAIN)
        self._open_source = bool(flags & _LINE_FLAG_OPEN_SOURCE)
        self._name = _cstr(name)
        self._consumer = _cstr(consumer)
        self._up_to_date = True

    def _maybe_update(self) -> None:
        try:
            self.update()
        except OSError:
            self._up_to_date = False

    def _attach(self, handle: _FdHandle, state: _State) -> None:
        self._state = state
        self._fd_handle = handle
        handle.refcount += 1
        self._maybe_update()

    def _request_fd(self) -> int:
        assert self._fd_handle is not None
        return self._fd_handle.fd

    def request(self, config: LineRequestConfig, default_val: int = 0) -> None:
        LineBulk([self]).request(config, [default_val])

    def release(self) -> None:
        if self._state is _State.FREE:
            return
        handle = self._fd_handle
        if handle is not None:
            handle.refcount -= 1
            if handle.refcount == 0:
                os.close(handle.fd)
            self._fd_handle = None
        self._state = _State.FREE

    @property
    def is_requested(self) -> bool:
        return self._state in (_State.REQUESTED_VALUES, _State.REQUESTED_EVENTS)

    @property
    def is_free(self) -> bool:
        return self._state is _State.FREE

    def get_value(self) -> int:
        return LineBulk([self]).get_values()[0]

    def set_value(self, value: int) -> None:
        LineBulk([self]).set_values([value])

    def event_wait(self, timeout: Optional[float]) -> bool:
        """Wait for an event; return False on timeout."""
        return len(LineBulk([self]).event_wait(timeout)) > 0

    def event_read(self) -> LineEvent:
        return read_event_fd(self.event_fd())

    def event_fd(self) -> int:
        if self._state is not _State.REQUESTED_EVENTS:
            raise _error(errno.EPERM)
        return self._request_fd()

    def __repr__(self) -> str:
        return f"Line(offset={self._offset}, name={self.name!r})"


class LineBulk:
    """A group of lines of one chip, handled together."""

    def __init__(self, lines: Iterable[Line] = ()) -> None:
        self._lines: list[Line] = []
        for line in lines:
            self.add(line)

    def add(self, line: Line) -> None:
        if len(self._lines) >= MAX_LINES:
            raise ValueError(f"a bulk holds at most {MAX_LINES} lines")
        self._lines.append(line)

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self) -> Iterator[Line]:
        return iter(self._lines)

    def __getitem__(self, index: int) -> Line:
        return self._lines[index]

    def _check_same_chip(self) -> None:
        if not self._lines:
            raise _error(errno.EINVAL)
        first = self._lines[0].chip
        if any(line.chip is not first for line in self._lines[1:]):
            raise _error(errno.EINVAL)

    def _check_all_requested(self) -> None:
        if not all(line.is_requested for line in self._lines):
            raise _error(errno.EPERM)

    def _check_all_free(self) -> None:
        if not all(line.is_free for line in self._lines):
            raise _error(errno.EBUSY)

    def request(
        self,
        config: LineRequestConfig,
        default_vals: Optional[Sequence[int]] = None,
    ) -> None:
        """Request all lines for values or for events."""
        self._check_same_chip()
        self._check_all_free()
        request_type = RequestType(config.request_type)
        if request_type.is_direction:
            self._request_values(config, request_type, default_vals)
        elif request_type.is_event:
            self._request_events(config, request_type)
        else:
            raise _error(errno.EINVAL)

    def _request_values(
        self,
        config: LineRequestConfig,
        request_type: RequestType,
        default_vals: Optional[Sequence[int]],
    ) -> None:
        flags = RequestFlag(config.flags)
        drive = RequestFlag.OPEN_DRAIN | RequestFlag.OPEN_SOURCE
        if request_type is not RequestType.DIRECTION_OUTPUT and flags & drive:
            raise _error(errno.EINVAL)
        if (flags & drive) == drive:
            raise _error(errno.EINVAL)

        req_flags = 0
        if flags & RequestFlag.OPEN_DRAIN:
            req_flags |= _HANDLE_OPEN_DRAIN
        if flags & RequestFlag.OPEN_SOURCE:
            req_flags |= _HANDLE_OPEN_SOURCE
        if flags & RequestFlag.ACTIVE_LOW:
            req_flags |= _HANDLE_ACTIVE_LOW
        if request_type is RequestType.DIRECTION_INPUT:
            req_flags |= _HANDLE_INPUT
        elif request_type is RequestType.DIRECTION_OUTPUT:
            req_flags |= _HANDLE_OUTPUT

        offsets = [0] * MAX_LINES
        defaults = bytearray(MAX_LINES)
        use_defaults = (
            request_type is RequestType.DIRECTION_OUTPUT and default_vals is not None
        )
        for i, line in enumerate(self._lines):
            offsets[i] = line.offset
            if use_defaults:
                defaults[i] = 1 if default_vals[i] else 0

        buf = bytearray(
            _HANDLE_REQUEST.pack(
                *offsets,
                req_flags,
                bytes(defaults),
                _consumer_bytes(config.consumer),
                len(self._lines),
                0,
            )
        )
        fcntl.ioctl(self._lines[0].chip.fileno(), _GET_LINEHANDLE, buf, True)
        fd = _HANDLE_REQUEST.unpack(buf)[-1]

        handle = _FdHandle(fd)
        for line in self._lines:
            line._attach(handle, _State.REQUESTED_VALUES)

    def _request_events(
        self, config: LineRequestConfig, request_type: RequestType
    ) -> None:
        flags = RequestFlag(config.flags)
        handle_flags = _HANDLE_INPUT
        if flags & RequestFlag.OPEN_DRAIN:
            handle_flags |= _HANDLE_OPEN_DRAIN
        if flags & RequestFlag.OPEN_SOURCE:
            handle_flags |= _HANDLE_OPEN_SOURCE
        if flags & RequestFlag.ACTIVE_LOW:
            handle_flags |= _HANDLE_ACTIVE_LOW
        event_flags = {
            RequestType.EVENT_RISING_EDGE: _EVENT_REQ_RISING,
            RequestType.EVENT_FALLING_EDGE: _EVENT_REQ_FALLING,
            RequestType.EVENT_BOTH_EDGES: _EVENT_REQ_BOTH,
        }[request_type]
        consumer = _consumer_bytes(config.consumer)

        done: list[Line] = []
        try:
            for line in self._lines:
                buf = bytearray(
                    _EVENT_REQUEST.pack(line.offset, handle_flags, event_flags, consumer, 0)
                )
                fcntl.ioctl(line.chip.fileno(), _GET_LINEEVENT, buf, True)
                fd = _EVENT_REQUEST.unpack(buf)[-1]
                line._attach(_FdHandle(fd), _State.REQUESTED_EVENTS)
                done.append(line)
        except BaseException:
            for line in reversed(done):
                line.release()
            raise

    def release(self) -> None:
        for line in self._lines:
            line.release()

    def get_values(self) -> list[int]:
        self._check_same_chip()
        self._check_all_requested()
        buf = bytearray(_HANDLE_DATA.size)
        fcntl.ioctl(self._lines[0]._request_fd(), _GET_LINE_VALUES, buf, True)
        return list(buf[: len(self._lines)])

    def set_values(self, values: Sequence[int]) -> None:
        self._check_same_chip()
        self._check_all_requested()
        if len(values) != len(self._lines):
            raise ValueError("one value is needed for each line")
        data = bytearray(_HANDLE_DATA.size)
        for i, value in enumerate(values):
            data[i] = 1 if value else 0
        fcntl.ioctl(self._lines[0]._request_fd(), _SET_LINE_VALUES, data, True)

    def event_wait(self, timeout: Optional[float]) -> "LineBulk":
        """Wait for events; return the lines that have one (empty on timeout)."""
        self._check_same_chip()
        self._check_all_requested()
        poller = select.poll()
        by_fd: dict[int, list[Line]] = {}
        for line in self._lines:
            fd = line._request_fd()
            by_fd.setdefault(fd, []).append(line)
            poller.register(fd, _POLL_MASK)
        timeout_ms = None if timeout is None else math.ceil(timeout * 1000)
        ready = poller.poll(timeout_ms)
        events = LineBulk()
        if not ready:
            return events
        ready_fds = {}
        for fd, revents in ready:
            if revents & select.POLLNVAL:
                raise _error(errno.EINVAL)
            if revents:
                ready_fds[fd] = revents
        seen: set[int] = set()
        for line in self._lines:
            fd = line._request_fd()
            if fd in ready_fds and id(line) not in seen:
                seen.add(id(line))
                events.add(line)
        return events

    def __repr__(self) -> str:
        return f"LineBulk({self._lines!r})"