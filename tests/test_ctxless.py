import errno
import os
from unittest import mock

import pytest

from gpiokit import ctxless
from gpiokit.core import MAX_LINES
from gpiokit.ctxless import MonitorEvent, PollFd, PollResult


@pytest.fixture
def no_chips():
    with mock.patch("os.listdir", return_value=[]):
        yield


@pytest.fixture
def pipes():
    made = [os.pipe() for _ in range(3)]
    yield made
    for read_end, write_end in made:
        os.close(read_end)
        os.close(write_end)


def _ignore(*args):
    return ctxless.CallbackResult.OK


def test_get_value_multiple_exceeds_max_lines():
    with pytest.raises(OSError) as info:
        ctxless.get_value_multiple("gpiochip0", list(range(MAX_LINES + 1)))
    assert info.value.errno == errno.EINVAL


def test_set_value_multiple_exceeds_max_lines():
    count = MAX_LINES + 1
    with pytest.raises(OSError) as info:
        ctxless.set_value_multiple("gpiochip0", list(range(count)), [0] * count)
    assert info.value.errno == errno.EINVAL


def test_get_value_multiple_needs_offsets():
    with pytest.raises(OSError) as info:
        ctxless.get_value_multiple("gpiochip0", [])
    assert info.value.errno == errno.EINVAL


def test_set_value_multiple_length_mismatch():
    with pytest.raises(ValueError):
        ctxless.set_value_multiple("gpiochip0", [0, 1], [1])


def test_event_monitor_multiple_needs_offsets():
    with pytest.raises(OSError) as info:
        ctxless.event_monitor_multiple(
            "gpiochip0", MonitorEvent.BOTH_EDGES, [], event_cb=_ignore
        )
    assert info.value.errno == errno.EINVAL


def test_event_monitor_invalid_event_type():
    with pytest.raises(ValueError):
        ctxless.event_monitor("gpiochip0", 42, 3, event_cb=_ignore)


def test_event_monitor_requires_callback():
    with pytest.raises(TypeError):
        ctxless.event_monitor("gpiochip0", MonitorEvent.BOTH_EDGES, 3)


def test_get_value_nonexistent_chip(no_chips):
    with pytest.raises(OSError) as info:
        ctxless.get_value("/dev/nonexistent_gpiochip", 3)
    assert info.value.errno == errno.ENOENT


def test_event_loop_nonexistent_chip(no_chips):
    with pytest.raises(OSError) as info:
        ctxless.event_loop("/dev/nonexistent_gpiochip", 3, event_cb=_ignore)
    assert info.value.errno == errno.ENOENT


def test_find_line_not_found(no_chips):
    assert ctxless.find_line("nonexistent") is None


def test_find_line_propagates_other_errors():
    denied = PermissionError(errno.EACCES, os.strerror(errno.EACCES))
    with mock.patch("os.listdir", side_effect=denied):
        with pytest.raises(OSError) as info:
            ctxless.find_line("nonexistent")
    assert info.value.errno == errno.EACCES


def test_basic_poll_marks_ready_descriptor(pipes):
    os.write(pipes[1][1], b"x")
    fds = [PollFd(read_end) for read_end, _ in pipes]
    assert ctxless._basic_poll(fds, 1.0) == 1
    assert [pfd.event for pfd in fds] == [False, True, False]


def test_basic_poll_counts_all_ready(pipes):
    for _, write_end in pipes:
        os.write(write_end, b"x")
    fds = [PollFd(read_end) for read_end, _ in pipes]
    assert ctxless._basic_poll(fds, 1.0) == len(pipes)
    assert all(pfd.event for pfd in fds)


def test_basic_poll_timeout(pipes):
    fds = [PollFd(read_end) for read_end, _ in pipes]
    assert ctxless._basic_poll(fds, 0.01) == PollResult.TIMEOUT
    assert not any(pfd.event for pfd in fds)


@pytest.mark.parametrize("count", [0, MAX_LINES + 1])
def test_basic_poll_rejects_bad_count(count):
    fds = [PollFd(0) for _ in range(count)]
    assert ctxless._basic_poll(fds, 0.01) == PollResult.ERR