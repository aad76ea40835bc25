"""Locating and reading ``.proxy.conf`` files and the remote host setting."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".proxy.conf"
REMOTE_HOST_ENV = "PROXY_REMOTE_HOST"
REMOTE_HOST_PROMPT = "Enter remote host (e.g., work-mbp.tailnet.ts.net): "

_PORT_RE = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class ProxyConfig:
    """One port entry of a configuration file."""

    port: str
    description: str = ""


def find_config_file(start: str | os.PathLike[str] | None = None) -> Path | None:
    """Return the nearest ``.proxy.conf`` in ``start`` or any parent directory."""
    try:
        directory = Path(start) if start is not None else Path.cwd()
        directory = directory.absolute()
    except OSError:
        return None
    for candidate_dir in (directory, *directory.parents):
        candidate = candidate_dir / CONFIG_FILENAME
        if candidate.exists():
            return candidate
    return None


def parse_config_file(path: str | os.PathLike[str]) -> list[ProxyConfig]:
    """Read ``port[:description]`` lines, skipping blanks, comments and bad ports."""
    configs: list[ProxyConfig] = []
    with open(path, encoding="utf-8", errors="replace") as handle:
        for raw in handle:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            port, _, description = line.partition(":")
            if not _PORT_RE.fullmatch(port):
                logger.warning("Skipping invalid port: %s", port)
                continue
            configs.append(ProxyConfig(port, description))
    return configs


def get_remote_host(
    environ: Mapping[str, str] | None = None,
    prompt: Callable[[str], str] | None = None,
) -> str:
    """Return the remote host from the environment, or ask for it.

    An empty string means no host could be determined.
    """
    env = os.environ if environ is None else environ
    host = env.get(REMOTE_HOST_ENV, "")
    if host:
        return host
    ask = input if prompt is None else prompt
    try:
        answer = ask(REMOTE_HOST_PROMPT)
    except EOFError:
        return ""
    tokens = answer.split()
    return tokens[0] if tokens else ""