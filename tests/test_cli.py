import logging
import socket

import pytest

from tcprelay.cli import build_parser, main


def _closed_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_parser_defaults_to_forward_config_mode():
    options = build_parser().parse_args([])
    assert options.mode == "forward"
    assert options.args == []
    assert options.headless is False


def test_parser_root_headless():
    options = build_parser().parse_args(["--headless"])
    assert options.headless is True
    assert options.mode == "forward"


def test_parser_subcommand_headless():
    options = build_parser().parse_args(["reverse", "--headless"])
    assert options.headless is True
    assert options.mode == "reverse"


def test_parser_reverse_alias_with_args():
    options = build_parser().parse_args(["r", "8080", "9090"])
    assert options.mode == "reverse"
    assert options.args == ["8080", "9090"]


def test_parser_forward_manual_args():
    options = build_parser().parse_args(["forward", "work-mbp:8080", "3000"])
    assert options.mode == "forward"
    assert options.args == ["work-mbp:8080", "3000"]
    assert options.headless is False


@pytest.mark.parametrize("mode", ["forward", "reverse"])
def test_wrong_argument_count_prints_usage(mode, capsys):
    assert main([mode, "only-one"]) == 1
    err = capsys.readouterr().err
    assert f"Usage: proxy {mode}" in err
    assert "Examples:" in err


@pytest.mark.parametrize("mode", ["forward", "reverse"])
def test_headless_config_without_valid_ports_fails(mode, tmp_path, monkeypatch, caplog):
    (tmp_path / ".proxy.conf").write_text("# ports\nnotaport:web\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PROXY_REMOTE_HOST", "example.com")
    caplog.set_level(logging.INFO)
    assert main([mode, "--headless"]) == 1
    assert "no valid port configurations found" in caplog.text


def test_manual_forward_without_port_fails(caplog):
    caplog.set_level(logging.INFO)
    assert main(["forward", "nohost", "3000"]) == 1
    assert "missing port" in caplog.text


def test_manual_reverse_to_closed_port_fails(caplog):
    caplog.set_level(logging.INFO)
    port = _closed_port()
    assert main(["reverse", str(port), "0"]) == 1
    assert "failed to connect to local service" in caplog.text