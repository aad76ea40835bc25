"""Live terminal dashboard showing per-port relay statistics."""

from __future__ import annotations

import math
import os
import select
import sys
import threading
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime

from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.padding import Padding
from rich.table import Table
from rich.text import Text

from tcprelay.manager import ProxyManager, ProxyStats, ProxyStatus

HEADER_TEXT = "TCP Proxy Dashboard"
EMPTY_TEXT = (
    "No active proxies found.\n"
    "Make sure you have a .proxy.conf file and services running."
)

_HEADER_STYLE = "bold color(15) on color(62)"
_MUTED_STYLE = "color(241)"
_COLUMNS = (
    ("Port", 6),
    ("Description", 20),
    ("Status", 10),
    ("Active", 6),
    ("Total", 6),
    ("Data", 8),
    ("Last Activity", 13),
)

_KIB = 1024
_MIB = 1024 * 1024
_GIB = 1024 * 1024 * 1024


def format_bytes(count: int) -> str:
    """Render a byte count with a B, KB, MB or GB suffix."""
    if count < _KIB:
        return f"{count}B"
    if count < _MIB:
        return f"{count / _KIB:.1f}KB"
    if count < _GIB:
        return f"{count / _MIB:.1f}MB"
    return f"{count / _GIB:.1f}GB"


def format_time(moment: datetime | None, now: datetime | None = None) -> str:
    """Describe how long ago ``moment`` was, relative to ``now``."""
    if moment is None:
        return "Never"
    if now is None:
        now = datetime.now()
    seconds = (now - moment).total_seconds()
    if seconds < 60:
        return f"{int(seconds)}s ago"
    if seconds < 3600:
        return f"{int(seconds / 60)}m ago"
    if seconds < 24 * 3600:
        return f"{int(seconds / 3600)}h ago"
    return f"{moment:%b} {moment.day} {moment:%H:%M}"


def sort_stats(stats: Mapping[str, ProxyStats] | Iterable[ProxyStats]) -> list[ProxyStats]:
    """Order ports with open connections first, then by most recent activity."""
    items = list(stats.values()) if isinstance(stats, Mapping) else list(stats)

    def key(entry: ProxyStats) -> tuple[bool, float]:
        recency = -entry.last_activity.timestamp() if entry.last_activity else math.inf
        return (entry.active_connections <= 0, recency)

    return sorted(items, key=key)


def status_style(status: ProxyStatus | str) -> str:
    """Return the style used to show a status."""
    if status == ProxyStatus.ACTIVE:
        return "bold color(46)"
    if status == ProxyStatus.STARTING:
        return "bold color(226)"
    return "bold color(196)"


def build_table(
    stats: Mapping[str, ProxyStats] | Iterable[ProxyStats],
    now: datetime | None = None,
) -> Table:
    """Build the statistics table, one row per port."""
    if now is None:
        now = datetime.now()
    table = Table(header_style=_HEADER_STYLE, border_style="color(238)")
    for header, width in _COLUMNS:
        table.add_column(header, min_width=width, style="color(252)")
    for entry in sort_stats(stats):
        active_style = "bold color(226)" if entry.active_connections > 0 else "color(226)"
        table.add_row(
            Text(entry.port, style="bold color(39)"),
            entry.description,
            Text(str(entry.status), style=status_style(entry.status)),
            Text(str(entry.active_connections), style=active_style),
            str(entry.total_connections),
            format_bytes(entry.bytes_transferred),
            format_time(entry.last_activity, now),
        )
    return table


@contextmanager
def _quit_key_watcher(stop: threading.Event) -> Iterator[None]:
    """Set ``stop`` when 'q' is typed on an interactive terminal."""
    try:
        import termios
        import tty
    except ImportError:
        yield
        return
    if not sys.stdin.isatty():
        yield
        return
    fd = sys.stdin.fileno()
    saved = termios.tcgetattr(fd)
    done = threading.Event()

    def watch() -> None:
        while not done.is_set() and not stop.is_set():
            ready, _, _ = select.select([fd], [], [], 0.2)
            if ready and os.read(fd, 1) == b"q":
                stop.set()

    tty.setcbreak(fd)
    watcher = threading.Thread(target=watch, name="dashboard-keys", daemon=True)
    watcher.start()
    try:
        yield
    finally:
        done.set()
        watcher.join(timeout=1)
        termios.tcsetattr(fd, termios.TCSADRAIN, saved)


class Dashboard:
    """Full-screen view of a :class:`ProxyManager`'s statistics."""

    def __init__(self, manager: ProxyManager, refresh_interval: float = 2.0) -> None:
        self.manager = manager
        self.refresh_interval = refresh_interval
        self.console = Console()

    @property
    def footer_text(self) -> str:
        return (
            "Press 'q' or Ctrl+C to quit • "
            f"Updates every {self.refresh_interval:g} seconds"
        )

    def render(self) -> RenderableType:
        """Build the current screen contents."""
        stats = self.manager.snapshot()
        header = Padding(Text(f" {HEADER_TEXT} ", style=_HEADER_STYLE), (0, 0, 1, 0), expand=False)
        footer_text = Text(self.footer_text, style=f"italic {_MUTED_STYLE}")
        if not stats:
            body: RenderableType = Padding(
                Text(EMPTY_TEXT, style=_MUTED_STYLE), (2, 0, 2, 0), expand=False
            )
            footer = Padding(footer_text, (2, 0, 0, 0), expand=False)
        else:
            body = build_table(stats)
            footer = Padding(footer_text, (1, 0, 0, 0), expand=False)
        return Group(header, body, footer)

    def run(self) -> None:
        """Show the dashboard until 'q' or Ctrl+C."""
        stop = threading.Event()
        with Live(
            self.render(), console=self.console, screen=True, auto_refresh=False
        ) as live, _quit_key_watcher(stop):
            try:
                while not stop.wait(self.refresh_interval):
                    live.update(self.render(), refresh=True)
            except KeyboardInterrupt:
                pass