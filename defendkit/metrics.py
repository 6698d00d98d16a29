"""Collection of device network metrics from a netstat-style source.

A :class:`MetricsCollector` asks its source for a fresh
:class:`NetstatSnapshot` on every query and turns it into the values a
device report needs: traffic counters, listening ports and established
TCP connections.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Union

logger = logging.getLogger(__name__)

_UINT32_MASK = 0xFFFFFFFF

NetstatSource = Callable[[], "NetstatSnapshot"]
LocalIp = Union[int, Callable[[], int]]


class MetricsCollectionError(RuntimeError):
    """Raised when the underlying netstat source fails to provide metrics."""


@dataclass(frozen=True)
class NetworkStats:
    """Traffic counters of the network interface."""

    bytes_received: int = 0
    bytes_sent: int = 0
    packets_received: int = 0
    packets_sent: int = 0


@dataclass(frozen=True)
class Connection:
    """An established TCP connection; addresses are 32-bit host-order integers."""

    local_ip: int
    remote_ip: int
    local_port: int
    remote_port: int


@dataclass(frozen=True)
class TcpSocketInfo:
    """One TCP socket as reported by the netstat source."""

    local_port: int
    remote_ip: int
    remote_port: int


@dataclass(frozen=True)
class NetstatSnapshot:
    """Raw metrics returned by a netstat source."""

    bytes_received: int = 0
    packets_received: int = 0
    bytes_sent: int = 0
    packets_sent: int = 0
    tcp_ports: tuple[int, ...] = field(default_factory=tuple)
    udp_ports: tuple[int, ...] = field(default_factory=tuple)
    tcp_sockets: tuple[TcpSocketInfo, ...] = field(default_factory=tuple)


def _check_limit(limit: int | None) -> None:
    if limit is not None and limit < 0:
        raise ValueError(f"limit must not be negative, got {limit}")


def _truncate(items: tuple, limit: int | None) -> tuple:
    if limit is not None and limit < len(items):
        logger.warning("Ports returned truncated due to insufficient buffer size.")
        return items[:limit]
    return items


class MetricsCollector:
    """Gathers network metrics from a netstat source.

    ``source`` is called with no arguments and returns a
    :class:`NetstatSnapshot`; any exception it raises is reported as
    :class:`MetricsCollectionError`. ``local_ip`` is the device's own
    address, either as an integer or as a callable returning one; the
    callable is consulted each time connections are listed.
    """

    def __init__(self, source: NetstatSource, local_ip: LocalIp = 0) -> None:
        self._source = source
        self._local_ip = local_ip

    def _snapshot(self) -> NetstatSnapshot:
        try:
            return self._source()
        except Exception as exc:
            logger.error("Failed to acquire metrics from netstat source: %s", exc)
            raise MetricsCollectionError(
                f"failed to acquire metrics from netstat source: {exc}"
            ) from exc

    def _current_local_ip(self) -> int:
        if callable(self._local_ip):
            return self._local_ip()
        return self._local_ip

    def network_stats(self) -> NetworkStats:
        """Return the current traffic counters."""
        snapshot = self._snapshot()
        logger.debug(
            "Network stats read. Bytes received: %u, packets received: %u, "
            "bytes sent: %u, packets sent: %u.",
            snapshot.bytes_received,
            snapshot.packets_received,
            snapshot.bytes_sent,
            snapshot.packets_sent,
        )
        return NetworkStats(
            bytes_received=snapshot.bytes_received & _UINT32_MASK,
            bytes_sent=snapshot.bytes_sent & _UINT32_MASK,
            packets_received=snapshot.packets_received & _UINT32_MASK,
            packets_sent=snapshot.packets_sent & _UINT32_MASK,
        )

    def open_tcp_ports(self, limit: int | None = None) -> list[int]:
        """Return the open TCP ports, at most ``limit`` of them if given."""
        _check_limit(limit)
        return list(_truncate(tuple(self._snapshot().tcp_ports), limit))

    def open_udp_ports(self, limit: int | None = None) -> list[int]:
        """Return the open UDP ports, at most ``limit`` of them if given."""
        _check_limit(limit)
        return list(_truncate(tuple(self._snapshot().udp_ports), limit))

    def established_connections(self, limit: int | None = None) -> list[Connection]:
        """Return established TCP connections, at most ``limit`` if given."""
        _check_limit(limit)
        sockets = _truncate(tuple(self._snapshot().tcp_sockets), limit)
        if not sockets:
            return []
        local_ip = self._current_local_ip()
        return [
            Connection(
                local_ip=local_ip,
                remote_ip=sock.remote_ip,
                local_port=sock.local_port,
                remote_port=sock.remote_port,
            )
            for sock in sockets
        ]