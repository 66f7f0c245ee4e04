"""Set the values of GPIO lines and hold them for a while."""

from __future__ import annotations

import enum
import getopt
import os
import re
import signal
import sys
import time
from typing import Callable, Optional, Sequence

from ..ctxless import set_value_multiple
from .common import die, die_perror, get_progname, print_version

INT_MAX = 2**31 - 1

_SHORTOPTS = "hvlm:s:u:b"
_LONGOPTS = ["help", "version", "active-low", "mode=", "sec=", "usec=", "background"]

_MAPPING_RE = re.compile(r"\s*([+-]?[0-9]+)=\s*([+-]?[0-9]+)", re.ASCII)
_UINT_RE = re.compile(r"\s*([+-]?)([0-9]+)", re.ASCII)


class Mode(enum.Enum):
    """What to do after the values have been set."""

    EXIT = "exit"
    WAIT = "wait"
    TIME = "time"
    SIGNAL = "signal"


def _print_help() -> None:
    prog = get_progname()
    print(
        f"Usage: {prog} [OPTIONS] <chip name/number> "
        "<offset1>=<value1> <offset2>=<value2> ..."
    )
    print(
        "Set GPIO line values of a GPIO chip and maintain the state "
        "until the process exits"
    )
    print()
    print("Options:")
    print("  -h, --help:\t\tdisplay this message and exit")
    print("  -v, --version:\tdisplay the version and exit")
    print("  -l, --active-low:\tset the line active state to low")
    print("  -m, --mode=[exit|wait|time|signal] (defaults to 'exit'):")
    print("\t\ttell the program what to do after setting values")
    print("  -s, --sec=SEC:\tspecify the number of seconds to wait (only valid for --mode=time)")
    print("  -u, --usec=USEC:\tspecify the number of microseconds to wait (only valid for --mode=time)")
    print("  -b, --background:\tafter setting values: detach from the controlling terminal")
    print()
    print("Modes:")
    print("  exit:\t\tset values and exit immediately")
    print("  wait:\t\tset values and wait for user to press ENTER")
    print("  time:\t\tset values and sleep for a specified amount of time")
    print("  signal:\tset values and wait for SIGINT or SIGTERM")
    print()
    print("Note: the state of a GPIO line controlled over the character device reverts to default")
    print("when the last process referencing the file descriptor representing the device file exits.")
    print("This means that it's wrong to run gpioset, have it exit and expect the line to continue")
    print("being driven high or low. It may happen if given pin is floating but it must be interpreted")
    print("as undefined behavior.")


def parse_mode(name: str) -> Mode:
    """Return the mode called ``name``; raise ValueError for unknown names."""
    try:
        return Mode(name)
    except ValueError:
        raise ValueError(f"invalid mode: {name}") from None


def parse_mapping(text: str) -> tuple[int, int]:
    """Parse ``<offset>=<value>``; raise ValueError describing what is wrong."""
    match = _MAPPING_RE.match(text)
    if match is None:
        raise ValueError("invalid offset<->value mapping")
    offset, value = int(match.group(1)), int(match.group(2))
    if value not in (0, 1):
        raise ValueError("value must be 0 or 1")
    if offset < 0 or offset > INT_MAX:
        raise ValueError("invalid offset")
    return offset, value


def _parse_uint(text: str) -> int:
    if text == "":
        return 0
    match = _UINT_RE.fullmatch(text)
    if match is None:
        raise ValueError(text)
    sign, digits = match.groups()
    value = int(digits)
    if sign == "-" and value:
        raise ValueError(text)
    return value


def _daemonize() -> None:
    try:
        if os.fork():
            os._exit(0)
        os.setsid()
        os.chdir("/")
        devnull = os.open(os.devnull, os.O_RDWR)
        for fd in (0, 1, 2):
            os.dup2(devnull, fd)
        if devnull > 2:
            os.close(devnull)
    except OSError as exc:
        die(f"unable to daemonize: {exc.strerror}")


def _wait_enter() -> None:
    sys.stdin.readline()


def _wait_time(seconds: float, daemonize: bool) -> None:
    if daemonize:
        _daemonize()
    time.sleep(seconds)


def _wait_signal(daemonize: bool) -> None:
    signals = {signal.SIGINT, signal.SIGTERM}
    try:
        signal.pthread_sigmask(signal.SIG_BLOCK, signals)
    except OSError as exc:
        die(f"error blocking signals: {exc.strerror}")
    if daemonize:
        _daemonize()
    signal.sigwait(signals)


def _callback_for(
    mode: Mode, seconds: float, daemonize: bool
) -> Optional[Callable[[], None]]:
    if mode is Mode.WAIT:
        return _wait_enter
    if mode is Mode.TIME:
        return lambda: _wait_time(seconds, daemonize)
    if mode is Mode.SIGNAL:
        return lambda: _wait_signal(daemonize)
    return None


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command; return the exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    prog = get_progname()
    try:
        opts, rest = getopt.getopt(args, _SHORTOPTS, _LONGOPTS)
    except getopt.GetoptError as exc:
        print(f"{prog}: {exc}", file=sys.stderr)
        die(f"try {prog} --help")

    mode = Mode.EXIT
    active_low = False
    daemonize = False
    sec = usec = 0
    for opt, arg in opts:
        if opt in ("-h", "--help"):
            _print_help()
            return 0
        if opt in ("-v", "--version"):
            print_version()
            return 0
        if opt in ("-l", "--active-low"):
            active_low = True
        elif opt in ("-m", "--mode"):
            try:
                mode = parse_mode(arg)
            except ValueError as exc:
                die(str(exc))
        elif opt in ("-s", "--sec"):
            try:
                sec = _parse_uint(arg)
            except ValueError:
                die(f"invalid time value in seconds: {arg}")
        elif opt in ("-u", "--usec"):
            try:
                usec = _parse_uint(arg)
            except ValueError:
                die(f"invalid time value in microseconds: {arg}")
        elif opt in ("-b", "--background"):
            daemonize = True

    if mode is not Mode.TIME and (sec or usec):
        die("can't specify wait time in this mode")
    if mode not in (Mode.SIGNAL, Mode.TIME) and daemonize:
        die("can't daemonize in this mode")
    if len(rest) < 1:
        die("gpiochip must be specified")
    if len(rest) < 2:
        die("at least one GPIO line offset to value mapping must be specified")

    device, *mappings = rest
    offsets = []
    values = []
    for text in mappings:
        try:
            offset, value = parse_mapping(text)
        except ValueError as exc:
            die(f"{exc}: {text}")
        offsets.append(offset)
        values.append(value)

    callback = _callback_for(mode, sec + usec / 1_000_000, daemonize)
    try:
        set_value_multiple(device, offsets, values, active_low, "gpioset", callback)
    except (OSError, ValueError) as exc:
        die_perror("error setting the GPIO line values", exc)

    return 0


if __name__ == "__main__":
    sys.exit(main())