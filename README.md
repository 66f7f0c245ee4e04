# gpiokit

A library and a set of command-line tools for working with GPIO chips and
lines on Linux through the GPIO character device (`/dev/gpiochipN`).

## Installation

```
pip install .
```

## Library

`gpiokit.core` gives direct access to chips and lines:

```python
from gpiokit.core import Chip, LineRequestConfig, RequestType

with Chip("/dev/gpiochip0") as chip:
    print(chip.name, chip.label, chip.num_lines)
    line = chip.get_line(3)
    line.request(LineRequestConfig(consumer="example",
                                   request_type=RequestType.DIRECTION_INPUT), 0)
    print(line.get_value())
    line.release()
```

A `Line` exposes its `offset`, `name`, `consumer`, `direction`,
`active_state` and the `is_used`, `is_open_drain` and `is_open_source`
flags; `update()` re-reads them from the kernel. Several lines of one chip
can be handled together with `LineBulk`, which supports requesting, reading
and writing values (`get_values`, `set_values`) and waiting for edge events
(`event_wait`). `Line.event_read()` returns a `LineEvent` with the edge type
and the timestamp in seconds and nanoseconds. Errors are reported as
`OSError` with the matching `errno`.

`gpiokit.helpers` adds lookups and shortcuts: `chip_open_lookup` accepts a
chip number, name, path or label; `iter_chips` and `iter_lines` walk the
system; `find_line`, `find_lines` and `line_find` look lines up by name;
`request_input`, `request_output` and the `request_*_edge_events` functions
cover the common request types for a single line or a group of lines.

`gpiokit.ctxless` performs one-shot operations without keeping a chip open:

```python
from gpiokit import ctxless

value = ctxless.get_value("gpiochip0", 3)
values = ctxless.get_value_multiple("gpiochip0", [0, 1, 2])
ctxless.set_value("gpiochip0", 3, 1)
print(ctxless.find_line("some-line-name"))  # (chip name, offset) or None
```

`event_monitor` and `event_monitor_multiple` (and `event_loop` /
`event_loop_multiple`, which watch both edges) run a polling loop and pass
every edge event to a callback `event_cb(event, offset, sec, nsec)` until it
returns `CallbackResult.STOP`. A custom `poll_cb(fds, timeout)` may replace
the built-in poll; it marks ready `PollFd` entries and returns their count or
a `PollResult`. An `ERR` result from either callback raises `RuntimeError`.

## Tools

- `gpiodetect` – list all GPIO chips with their labels and line counts.
- `gpioinfo [CHIP ...]` – print details of every line of the given chips, or of all chips.
- `gpiofind NAME` – print the chip and offset of the line with the given name; exits with status 1 if there is none.
- `gpioset [-l] [-m exit|wait|time|signal] [-s SEC] [-u USEC] [-b] CHIP OFFSET=VALUE ...` – set line values and hold them according to the chosen mode. `-s`/`-u` are only valid with `time`, `-b` only with `time` or `signal`.

Every tool accepts `--help` and `--version`.

## What is not included

There is no command-line tool for reading line values or for watching lines
for edge events. Use `gpiokit.ctxless.get_value_multiple` and
`gpiokit.ctxless.event_monitor_multiple` from Python for those tasks.

## Tests

```
pip install .[test]
pytest
```