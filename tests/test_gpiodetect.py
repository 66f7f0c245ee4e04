import errno
import os
import sys
from unittest import mock

import pytest

from gpiokit.tools import gpiodetect
from gpiokit.tools.common import version_text


@pytest.fixture
def progname():
    with mock.patch.object(sys, "argv", ["gpiodetect"]):
        yield "gpiodetect"


def test_invalid_args(progname, capsys):
    with pytest.raises(SystemExit) as info:
        gpiodetect.main(["unused argument"])
    assert info.value.code == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "unrecognized argument" in captured.err


def test_unknown_option(progname, capsys):
    with pytest.raises(SystemExit) as info:
        gpiodetect.main(["--bogus"])
    assert info.value.code == 1
    assert f"try {progname} --help" in capsys.readouterr().err


def test_no_chips_prints_nothing(progname, capsys):
    with mock.patch("os.listdir", return_value=[]):
        assert gpiodetect.main([]) == 0
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err == ""


def test_access_error(progname, capsys):
    denied = PermissionError(errno.EACCES, os.strerror(errno.EACCES))
    with mock.patch("os.listdir", side_effect=denied):
        with pytest.raises(SystemExit) as info:
            gpiodetect.main([])
    assert info.value.code == 1
    err = capsys.readouterr().err
    assert "unable to access GPIO chips" in err
    assert os.strerror(errno.EACCES) in err


def test_help(progname, capsys):
    assert gpiodetect.main(["--help"]) == 0
    assert capsys.readouterr().out.startswith(f"Usage: {progname} [OPTIONS]\n")


def test_version(progname, capsys):
    assert gpiodetect.main(["-v"]) == 0
    assert capsys.readouterr().out == version_text(progname) + "\n"