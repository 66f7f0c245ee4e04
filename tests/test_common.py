import errno
import os
import sys
from unittest import mock

import pytest

from gpiokit.core import version_string
from gpiokit.tools import common


@pytest.fixture
def progname():
    with mock.patch.object(sys, "argv", ["/usr/local/bin/gpiotool"]):
        yield "gpiotool"


def test_get_progname_is_basename(progname):
    assert common.get_progname() == progname


def test_get_progname_without_argv():
    with mock.patch.object(sys, "argv", []):
        assert common.get_progname() == "gpiokit"


def test_die_prints_and_exits(progname, capsys):
    with pytest.raises(SystemExit) as info:
        common.die("something failed")
    assert info.value.code == 1
    captured = capsys.readouterr()
    assert captured.err == f"{progname}: something failed\n"
    assert captured.out == ""


def test_die_perror_appends_reason(progname, capsys):
    error = OSError(errno.ENOENT, os.strerror(errno.ENOENT))
    with pytest.raises(SystemExit) as info:
        common.die_perror("lookup", error)
    assert info.value.code == 1
    assert capsys.readouterr().err == f"{progname}: lookup: {os.strerror(errno.ENOENT)}\n"


def test_die_perror_without_strerror(progname, capsys):
    with pytest.raises(SystemExit):
        common.die_perror("lookup", ValueError("bad input"))
    assert capsys.readouterr().err == f"{progname}: lookup: bad input\n"


def test_version_text_names_program_and_version():
    text = common.version_text("gpiotool")
    assert text.startswith("gpiotool (gpiokit) v")
    assert text.endswith(version_string())


def test_print_version(progname, capsys):
    common.print_version()
    assert capsys.readouterr().out == common.version_text(progname) + "\n"