import errno
from dataclasses import dataclass, field
from typing import Optional
from unittest import mock

import pytest

from gpiokit import helpers
from gpiokit.core import LineBulk, RequestFlag


@dataclass
class FakeLine:
    chip: object
    offset: int
    name: Optional[str] = None
    is_free: bool = True


@dataclass
class FakeChip:
    num_lines: int
    label: str = "gpio-mockup-B"
    named: bool = True
    requested: list = field(default_factory=list)

    def get_line(self, offset):
        if offset < 0 or offset >= self.num_lines:
            raise OSError(errno.EINVAL, "invalid offset")
        self.requested.append(offset)
        name = f"{self.label}-{offset}" if self.named else None
        return FakeLine(self, offset, name)


def offsets_of(bulk):
    return [line.offset for line in bulk]


def test_get_lines_keeps_order():
    bulk = helpers.get_lines(FakeChip(16), [1, 3, 4, 7])
    assert isinstance(bulk, LineBulk)
    assert len(bulk) == 4
    assert offsets_of(bulk) == [1, 3, 4, 7]


def test_get_all_lines():
    bulk = helpers.get_all_lines(FakeChip(4))
    assert len(bulk) == 4
    assert offsets_of(bulk) == [0, 1, 2, 3]


def test_iter_lines_fetches_all_up_front():
    chip = FakeChip(5)
    iterator = helpers.iter_lines(chip)
    assert chip.requested == [0, 1, 2, 3, 4]
    assert [line.offset for line in iterator] == [0, 1, 2, 3, 4]


def test_find_line_good():
    line = helpers.find_line(FakeChip(8), "gpio-mockup-B-4")
    assert line.offset == 4
    assert line.name == "gpio-mockup-B-4"


def test_find_line_not_found():
    with pytest.raises(OSError) as exc:
        helpers.find_line(FakeChip(8), "nonexistent")
    assert exc.value.errno == errno.ENOENT


def test_find_line_skips_unnamed():
    with pytest.raises(OSError) as exc:
        helpers.find_line(FakeChip(8, named=False), "gpio-mockup-B-4")
    assert exc.value.errno == errno.ENOENT


def test_find_lines_good():
    names = ["gpio-mockup-B-3", "gpio-mockup-B-6", "gpio-mockup-B-7"]
    bulk = helpers.find_lines(FakeChip(8), names)
    assert len(bulk) == 3
    assert offsets_of(bulk) == [3, 6, 7]


def test_find_lines_not_found():
    names = ["gpio-mockup-B-3", "nonexistent", "gpio-mockup-B-7"]
    with pytest.raises(OSError) as exc:
        helpers.find_lines(FakeChip(8), names)
    assert exc.value.errno == errno.ENOENT


def test_request_input_lines_of_different_chips():
    lines = [FakeChip(4).get_line(0), FakeChip(4).get_line(1)]
    with pytest.raises(OSError) as exc:
        helpers.request_input(lines, "consumer")
    assert exc.value.errno == errno.EINVAL


def test_request_input_busy_line():
    chip = FakeChip(4)
    lines = [chip.get_line(0), chip.get_line(1)]
    lines[1].is_free = False
    with pytest.raises(OSError) as exc:
        helpers.request_input(lines, "consumer")
    assert exc.value.errno == errno.EBUSY


def test_request_events_busy_line():
    chip = FakeChip(8)
    lines = [chip.get_line(i) for i in range(8)]
    lines[5].is_free = False
    with pytest.raises(OSError) as exc:
        helpers.request_both_edges_events(lines, "consumer")
    assert exc.value.errno == errno.EBUSY


def test_request_input_open_drain_rejected():
    chip = FakeChip(4)
    with pytest.raises(OSError) as exc:
        helpers.request_input([chip.get_line(0)], "consumer", RequestFlag.OPEN_DRAIN)
    assert exc.value.errno == errno.EINVAL


def test_request_output_drain_and_source_rejected():
    chip = FakeChip(4)
    flags = RequestFlag.OPEN_DRAIN | RequestFlag.OPEN_SOURCE
    with pytest.raises(OSError) as exc:
        helpers.request_output([chip.get_line(0)], "consumer", 1, flags)
    assert exc.value.errno == errno.EINVAL


def test_chip_open_by_name_nonexistent():
    with pytest.raises(FileNotFoundError) as exc:
        helpers.chip_open_by_name("nonexistent_gpiochip")
    assert exc.value.filename == "/dev/nonexistent_gpiochip"


def test_chip_open_by_number_path():
    with pytest.raises(FileNotFoundError) as exc:
        helpers.chip_open_by_number(98765)
    assert exc.value.filename == "/dev/gpiochip98765"


@mock.patch("os.listdir", return_value=[])
def test_chip_open_by_label_bad(_listdir):
    with pytest.raises(OSError) as exc:
        helpers.chip_open_by_label("nonexistent_gpio_chip")
    assert exc.value.errno == errno.ENOENT


@mock.patch("os.listdir", return_value=["null", "zero"])
def test_iter_chips_ignores_other_devices(_listdir):
    assert list(helpers.iter_chips()) == []


@mock.patch("os.listdir", return_value=["null", "gpiochip_missing"])
def test_iter_chips_fails_on_unopenable_chip(_listdir):
    with pytest.raises(FileNotFoundError) as exc:
        list(helpers.iter_chips())
    assert exc.value.filename == "/dev/gpiochip_missing"


def test_chip_open_lookup_by_number():
    with pytest.raises(FileNotFoundError) as exc:
        helpers.chip_open_lookup("98765")
    assert exc.value.filename == "/dev/gpiochip98765"


@mock.patch("os.listdir", return_value=[])
def test_chip_open_lookup_falls_back_to_name(_listdir):
    with pytest.raises(FileNotFoundError) as exc:
        helpers.chip_open_lookup("nonexistent_name")
    assert exc.value.filename == "/dev/nonexistent_name"


@mock.patch("os.listdir", return_value=[])
def test_chip_open_lookup_path_not_a_chip(_listdir):
    with pytest.raises(OSError) as exc:
        helpers.chip_open_lookup("/dev/null")
    assert exc.value.errno == errno.ENOTTY


@mock.patch("os.listdir", return_value=[])
def test_line_get_not_a_chip(_listdir):
    with pytest.raises(OSError) as exc:
        helpers.line_get("/dev/null", 0)
    assert exc.value.errno == errno.ENOTTY


@mock.patch("os.listdir", return_value=[])
def test_line_find_not_found(_listdir):
    with pytest.raises(OSError) as exc:
        helpers.line_find("nonexistent")
    assert exc.value.errno == errno.ENOENT