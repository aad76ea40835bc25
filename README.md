# tcprelay

A small TCP proxy with two modes and an optional live dashboard in the terminal.

- **Forward mode** listens on `localhost:<port>` and relays every connection to
  the same or a given port on a remote host.
- **Reverse mode** takes a service that listens only on `localhost:<port>` and
  exposes it on all network interfaces (`0.0.0.0:<port>`).

Every proxied port keeps counts of active and total connections, the bytes
moved and the time of the last activity. The dashboard shows these figures and
refreshes every two seconds.

## Installation

```
pip install .
```

The dashboard uses `rich`. To run the tests, install the `test` extra:

```
pip install ".[test]"
pytest
```

## Configuration file

Without port arguments, `tcprelay` looks for a file named `.proxy.conf`. It
starts in the current directory and moves up through each parent directory
until it finds one. Each line gives a port and, after an optional colon, a
description:

```
# ports to relay
3000:web frontend
8080:api
5432
```

Blank lines and lines that start with `#` are ignored. A line whose port is not
an integer is skipped with a warning. A port without a description is shown as
`port <number>`.

Before a port starts listening, its target is tried once. If the target cannot
be reached, or the listening port cannot be bound, that port is marked as
failed and the other ports carry on.

## Usage

Forward every configured port to the same port on a remote host, with the
dashboard:

```
tcprelay forward
```

The remote host comes from the `PROXY_REMOTE_HOST` environment variable. If it
is not set, you are asked for it before the dashboard starts. Run without the
dashboard and log to stderr instead:

```
tcprelay forward --headless
```

Forward a single port by hand. Local port 3000 is relayed to `work-mbp:8080`:

```
tcprelay forward work-mbp:8080 3000
```

Expose every configured localhost service on all interfaces:

```
tcprelay reverse
tcprelay reverse --headless
```

Expose one service by hand. `localhost:8080` becomes reachable on port 8080 of
every interface:

```
tcprelay reverse 8080 8080
```

`r` is accepted as a short form of `reverse`. With no subcommand at all,
`tcprelay` runs in forward mode from the configuration file; `--headless` may
then be given before any subcommand.

Single-port runs never show the dashboard; they log to stderr and exit with
status 1 if the proxy cannot be started. Giving any number of port arguments
other than none or two prints a usage message and exits with status 1.

In the dashboard, press `Ctrl+C` to quit; on terminals that support it
(POSIX), `q` quits as well. Quitting the dashboard also stops the relays.

## Using it from Python

The relays are coroutines of `tcprelay.manager.ProxyManager` and run until
cancelled:

```python
import asyncio

from tcprelay.manager import ProxyManager, ProxyError

manager = ProxyManager()
try:
    asyncio.run(manager.run_single_forward_proxy("work-mbp:8080", "3000"))
except ProxyError as err:
    print(err)
```

The other entry points are `run_single_reverse_proxy(local_port,
external_port)`, `run_config_reverse_mode(start=None)` and
`run_config_forward_mode(start=None, remote_host=None)`, where `start` is the
directory from which the `.proxy.conf` search begins. `ProxyError` is raised
when a proxy cannot be started or no usable configuration is found.

`ProxyManager.snapshot()` returns a copy of the current `ProxyStats` for each
port, with its `ProxyStatus`. `tcprelay.config` has `find_config_file`,
`parse_config_file` and `get_remote_host`. `tcprelay.dashboard.Dashboard`
renders the statistics with `rich`, and `build_table`, `format_bytes` and
`format_time` can be used on their own.

## What it does not do

`tcprelay` relays plain TCP only. It does not handle UDP, does not terminate or
inspect TLS, and has no authentication or access control of its own. The
dashboard only displays statistics; proxies cannot be added or stopped from it.