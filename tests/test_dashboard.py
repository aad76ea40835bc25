import io
from datetime import datetime, timedelta

import pytest
from rich.console import Console
from rich.style import Style

from tcprelay.dashboard import (
    Dashboard,
    build_table,
    format_bytes,
    format_time,
    sort_stats,
    status_style,
)
from tcprelay.manager import ProxyManager, ProxyStats, ProxyStatus


def _stats(port, active=0, last=None, status=ProxyStatus.ACTIVE):
    return ProxyStats(
        port=port,
        description=f"service {port}",
        status=status,
        local_addr=f"localhost:{port}",
        remote_addr=f"0.0.0.0:{port}",
        active_connections=active,
        last_activity=last,
    )


def _render(renderable):
    console = Console(file=io.StringIO(), width=140, color_system=None)
    console.print(renderable)
    return console.file.getvalue()


@pytest.mark.parametrize("count", [0, 1, 512, 1023])
def test_format_bytes_small_counts_are_plain(count):
    assert format_bytes(count) == f"{count}B"


def test_format_bytes_pinned_values():
    assert format_bytes(1024) == "1.0KB"
    assert format_bytes(1536) == "1.5KB"
    assert format_bytes(1024 ** 3) == "1.0GB"


@pytest.mark.parametrize(
    "count, suffix",
    [(1024 * 1024 - 1, "KB"), (1024 * 1024, "MB"), (5 * 1024 ** 2, "MB"), (3 * 1024 ** 3, "GB")],
)
def test_format_bytes_unit_boundaries(count, suffix):
    result = format_bytes(count)
    assert result.endswith(suffix)
    assert result[: -len(suffix)].replace(".", "").isdigit()


def test_format_time_never():
    assert format_time(None) == "Never"


@pytest.mark.parametrize(
    "delta, expected",
    [
        (timedelta(seconds=5), "5s ago"),
        (timedelta(minutes=5), "5m ago"),
        (timedelta(hours=3), "3h ago"),
    ],
)
def test_format_time_relative(delta, expected):
    now = datetime(2024, 6, 1, 12, 0, 0)
    assert format_time(now - delta, now) == expected


def test_format_time_old_uses_date():
    moment = datetime(2024, 1, 2, 15, 4)
    assert format_time(moment, moment + timedelta(days=2)) == "Jan 2 15:04"


def test_sort_stats_active_first_then_recent():
    base = datetime(2024, 6, 1, 12, 0, 0)
    entries = {
        "1": _stats("1", active=0, last=base + timedelta(minutes=10)),
        "2": _stats("2", active=2, last=base),
        "3": _stats("3", active=0, last=None),
        "4": _stats("4", active=1, last=base + timedelta(minutes=1)),
        "5": _stats("5", active=0, last=base + timedelta(minutes=20)),
    }
    assert [s.port for s in sort_stats(entries)] == ["4", "2", "5", "1", "3"]


def test_sort_stats_accepts_iterable_and_keeps_all():
    entries = [_stats(str(p), active=p % 2) for p in range(6)]
    ordered = sort_stats(entries)
    assert sorted(s.port for s in ordered) == sorted(s.port for s in entries)
    actives = [s.active_connections > 0 for s in ordered]
    assert actives == sorted(actives, reverse=True)


def test_status_styles():
    assert Style.parse(status_style(ProxyStatus.ACTIVE)).color.number == 46
    assert Style.parse(status_style(ProxyStatus.STARTING)).color.number == 226
    assert Style.parse(status_style(ProxyStatus.FAILED_BIND)).color.number == 196
    assert status_style(ProxyStatus.FAILED_LOCAL) == status_style("whatever")
    assert Style.parse(status_style("Active")).bold is True


def test_build_table_columns_and_rows():
    entries = {"80": _stats("80"), "443": _stats("443", active=1)}
    table = build_table(entries, datetime(2024, 6, 1))
    assert [c.header for c in table.columns] == [
        "Port",
        "Description",
        "Status",
        "Active",
        "Total",
        "Data",
        "Last Activity",
    ]
    assert table.row_count == len(entries)


def test_build_table_renders_values():
    entry = _stats("8080", last=None)
    entry.bytes_transferred = 2048
    out = _render(build_table({"8080": entry}))
    assert "8080" in out
    assert "service 8080" in out
    assert format_bytes(2048) in out
    assert "Never" in out


def test_render_empty_manager():
    out = _render(Dashboard(ProxyManager()).render())
    assert "TCP Proxy Dashboard" in out
    assert "No active proxies found." in out
    assert "Updates every 2 seconds" in out


def test_render_with_registered_port():
    manager = ProxyManager()
    manager.register("9000", "api", "localhost:9000", "0.0.0.0:9000")
    out = _render(Dashboard(manager, refresh_interval=5).render())
    assert "9000" in out
    assert "Starting" in out
    assert "No active proxies found." not in out
    assert "Updates every 5 seconds" in out