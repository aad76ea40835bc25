"""TCP relays with shared, thread-safe per-port statistics."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import partial

from tcprelay.config import (
    ProxyConfig,
    find_config_file,
    get_remote_host,
    parse_config_file,
)

logger = logging.getLogger(__name__)

_CHUNK = 64 * 1024


class ProxyError(Exception):
    """Raised when a proxy cannot be started."""


class ProxyStatus(str, Enum):
    STARTING = "Starting"
    ACTIVE = "Active"
    FAILED_LOCAL = "Failed - Local service unavailable"
    FAILED_REMOTE = "Failed - Remote unavailable"
    FAILED_BIND = "Failed - Cannot bind"

    def __str__(self) -> str:
        return self.value


@dataclass
class ProxyStats:
    """Counters and addresses of one proxied port."""

    port: str
    description: str
    status: ProxyStatus
    local_addr: str
    remote_addr: str
    start_time: datetime = field(default_factory=datetime.now)
    active_connections: int = 0
    total_connections: int = 0
    bytes_transferred: int = 0
    last_activity: datetime | None = None


def _join(host: str, port: object) -> str:
    return f"[{host}]:{port}" if ":" in host else f"{host}:{port}"


def _split(address: str) -> tuple[str, str] | None:
    host, sep, port = address.rpartition(":")
    if not sep:
        return None
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, port


async def _close(writer: asyncio.StreamWriter) -> None:
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass


class ProxyManager:
    """Runs TCP relays and keeps statistics for each of them."""

    def __init__(self) -> None:
        self._stats: dict[str, ProxyStats] = {}
        self._lock = threading.Lock()
        self.configs: list[ProxyConfig] = []

    def snapshot(self) -> dict[str, ProxyStats]:
        """Return copies of the statistics of every port."""
        with self._lock:
            return {port: dataclasses.replace(stats) for port, stats in self._stats.items()}

    def register(self, port: str, description: str, local_addr: str, remote_addr: str) -> None:
        """Start fresh statistics for a port in the starting state."""
        with self._lock:
            self._stats[port] = ProxyStats(
                port=port,
                description=description,
                status=ProxyStatus.STARTING,
                local_addr=local_addr,
                remote_addr=remote_addr,
            )

    def set_status(self, port: str, status: ProxyStatus) -> None:
        with self._lock:
            stats = self._stats.get(port)
            if stats is not None:
                stats.status = status

    def add_bytes(self, port: str, count: int) -> None:
        with self._lock:
            stats = self._stats.get(port)
            if stats is not None:
                stats.bytes_transferred += count

    def touch(self, port: str) -> None:
        with self._lock:
            stats = self._stats.get(port)
            if stats is not None:
                stats.last_activity = datetime.now()

    def connection_opened(self, port: str) -> None:
        with self._lock:
            stats = self._stats.get(port)
            if stats is not None:
                stats.active_connections += 1
                stats.total_connections += 1
                stats.last_activity = datetime.now()

    def connection_closed(self, port: str) -> None:
        with self._lock:
            stats = self._stats.get(port)
            if stats is not None:
                stats.active_connections -= 1

    async def run_single_reverse_proxy(self, local_port: str, external_port: str) -> None:
        """Expose ``localhost:local_port`` on ``0.0.0.0:external_port``."""
        await self.serve(
            str(local_port),
            "Manual reverse proxy",
            "0.0.0.0",
            str(external_port),
            "localhost",
            str(local_port),
            True,
        )

    async def run_single_forward_proxy(self, remote_addr: str, local_port: str) -> None:
        """Relay ``localhost:local_port`` to ``remote_addr`` (``host:port``)."""
        local_port = str(local_port)
        parts = _split(remote_addr)
        if parts is None:
            self.register(local_port, "Manual forward proxy", f"localhost:{local_port}", remote_addr)
            self.set_status(local_port, ProxyStatus.FAILED_REMOTE)
            raise ProxyError(
                f"failed to connect to remote server {remote_addr}: missing port in address"
            )
        host, port = parts
        await self.serve(local_port, "Manual forward proxy", "localhost", local_port, host, port, False)

    async def run_config_reverse_mode(self, start: str | os.PathLike[str] | None = None) -> None:
        """Expose every configured local port on all interfaces."""
        configs = self._load_configs(start)
        await asyncio.gather(*(self._serve_config(cfg, None) for cfg in configs))

    async def run_config_forward_mode(
        self,
        start: str | os.PathLike[str] | None = None,
        remote_host: str | None = None,
    ) -> None:
        """Relay every configured port on localhost to the same port on a remote host."""
        configs = self._load_configs(start)
        if remote_host is None:
            remote_host = await asyncio.to_thread(get_remote_host)
        if not remote_host:
            raise ProxyError("could not determine remote host")
        await asyncio.gather(*(self._serve_config(cfg, remote_host) for cfg in configs))

    async def serve(
        self,
        port: str,
        description: str,
        listen_host: str,
        listen_port: str,
        target_host: str,
        target_port: str,
        public_addr: bool = False,
    ) -> None:
        """Check the target, listen and relay every connection until cancelled.

        ``public_addr`` marks the listening side as the exposed one (reverse
        mode): the target is then the local service.
        """
        listen_addr = _join(listen_host, listen_port)
        target_addr = _join(target_host, target_port)
        if public_addr:
            local_addr, remote_addr = target_addr, listen_addr
            unreachable, what = ProxyStatus.FAILED_LOCAL, "local service"
        else:
            local_addr, remote_addr = listen_addr, target_addr
            unreachable, what = ProxyStatus.FAILED_REMOTE, "remote server"
        self.register(port, description, local_addr, remote_addr)

        try:
            _, probe = await asyncio.open_connection(target_host, str(target_port))
        except OSError as err:
            self.set_status(port, unreachable)
            raise ProxyError(f"failed to connect to {what} {target_addr}: {err}") from err
        await _close(probe)

        handler = partial(self._handle, port, target_host, str(target_port))
        try:
            server = await asyncio.start_server(handler, listen_host, str(listen_port))
        except OSError as err:
            self.set_status(port, ProxyStatus.FAILED_BIND)
            raise ProxyError(f"failed to start listener on {listen_addr}: {err}") from err

        self.set_status(port, ProxyStatus.ACTIVE)
        logger.info(
            "%s proxy active: %s -> %s (%s)",
            "Reverse" if public_addr else "Forward",
            listen_addr,
            target_addr,
            description,
        )
        async with server:
            await server.serve_forever()

    def _load_configs(self, start: str | os.PathLike[str] | None) -> list[ProxyConfig]:
        path = find_config_file(start)
        if path is None:
            raise ProxyError("no .proxy.conf file found")
        try:
            configs = parse_config_file(path)
        except OSError as err:
            raise ProxyError(f"failed to parse config file {path}: {err}") from err
        if not configs:
            raise ProxyError("no valid port configurations found")
        self.configs = configs
        logger.info("Using config file: %s", path)
        return configs

    async def _serve_config(self, cfg: ProxyConfig, remote_host: str | None) -> None:
        description = cfg.description or f"port {cfg.port}"
        try:
            if remote_host is None:
                await self.serve(cfg.port, description, "0.0.0.0", cfg.port, "localhost", cfg.port, True)
            else:
                await self.serve(cfg.port, description, "localhost", cfg.port, remote_host, cfg.port, False)
        except ProxyError as err:
            logger.error("%s (%s)", err, description)

    async def _handle(
        self,
        port: str,
        target_host: str,
        target_port: str,
        client_reader: asyncio.StreamReader,
        client_writer: asyncio.StreamWriter,
    ) -> None:
        self.connection_opened(port)
        try:
            try:
                remote_reader, remote_writer = await asyncio.open_connection(target_host, target_port)
            except OSError as err:
                logger.warning(
                    "Failed to connect to remote server %s: %s", _join(target_host, target_port), err
                )
                return
            try:
                await asyncio.gather(
                    self._pump(port, client_reader, remote_writer, "client->remote"),
                    self._pump(port, remote_reader, client_writer, "remote->client"),
                )
            finally:
                await _close(remote_writer)
        finally:
            await _close(client_writer)
            self.connection_closed(port)

    async def _pump(
        self,
        port: str,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        direction: str,
    ) -> None:
        copied = 0
        try:
            while chunk := await reader.read(_CHUNK):
                writer.write(chunk)
                await writer.drain()
                copied += len(chunk)
            if writer.can_write_eof():
                writer.write_eof()
        except OSError as err:
            logger.warning("Error copying %s: %s", direction, err)
        finally:
            self.add_bytes(port, copied)
            self.touch(port)