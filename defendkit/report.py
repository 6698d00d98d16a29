"""Device defender JSON report generation.

:func:`generate_json_report` renders a :class:`ReportMetrics` into the
JSON document expected by the device defender service, including the
stack high water mark and running task ids as custom metrics. As with
the array formatters, ``buffer_length`` bounds the output and reserves
one character for a terminating NUL; ``None`` means no limit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Sequence

from defendkit.metrics import Connection, NetworkStats
from defendkit.report_arrays import (
    BadParameterError,
    BufferTooSmallError,
    format_connections_array,
    format_ports_array,
    format_task_ids_array,
)

logger = logging.getLogger(__name__)

HEADER_KEY = "header"
REPORT_ID_KEY = "report_id"
VERSION_KEY = "version"
METRICS_KEY = "metrics"
TCP_LISTENING_PORTS_KEY = "listening_tcp_ports"
UDP_LISTENING_PORTS_KEY = "listening_udp_ports"
PORTS_KEY = "ports"
TOTAL_KEY = "total"
NETWORK_STATS_KEY = "network_stats"
BYTES_IN_KEY = "bytes_in"
BYTES_OUT_KEY = "bytes_out"
PKTS_IN_KEY = "packets_in"
PKTS_OUT_KEY = "packets_out"
TCP_CONNECTIONS_KEY = "tcp_connections"
ESTABLISHED_CONNECTIONS_KEY = "established_connections"
CONNECTIONS_KEY = "connections"
CUSTOM_METRICS_KEY = "custom_metrics"
NUMBER_KEY = "number"
NUMBER_LIST_KEY = "number_list"

_UINT32_MASK = 0xFFFFFFFF


@dataclass
class ReportMetrics:
    """Metrics to include in a report, including the custom metrics."""

    network_stats: NetworkStats = field(default_factory=NetworkStats)
    tcp_ports: Sequence[int] = field(default_factory=list)
    udp_ports: Sequence[int] = field(default_factory=list)
    connections: Sequence[Connection] = field(default_factory=list)
    stack_high_water_mark: int = 0
    task_ids: Sequence[int] = field(default_factory=list)


def _u32(value: int) -> int:
    return value & _UINT32_MASK


class _BoundedWriter:
    """Accumulates report pieces while tracking the space left in the buffer."""

    def __init__(self, buffer_length: int | None) -> None:
        self._remaining = buffer_length
        self._parts: list[str] = []

    def text(self, piece: str, what: str) -> None:
        if self._remaining is not None and not 0 < len(piece) < self._remaining:
            logger.error("Failed to write %s.", what)
            raise BufferTooSmallError(f"buffer too small to write {what}")
        self._consume(piece)

    def array(
        self,
        formatter: Callable[[Iterable, int | None], str],
        items: Iterable,
        what: str,
    ) -> None:
        try:
            piece = formatter(items, self._remaining)
        except BufferTooSmallError:
            logger.error("Failed to write %s.", what)
            raise
        self._consume(piece)

    def _consume(self, piece: str) -> None:
        self._parts.append(piece)
        if self._remaining is not None:
            self._remaining -= len(piece)

    def result(self) -> str:
        return "".join(self._parts)


def generate_json_report(
    metrics: ReportMetrics,
    major_version: int,
    minor_version: int,
    report_id: int,
    buffer_length: int | None = None,
) -> str:
    """Return the JSON report for ``metrics``.

    Raises :class:`BadParameterError` for missing metrics or a zero or
    negative buffer length, and :class:`BufferTooSmallError` when the
    report does not fit in ``buffer_length`` characters plus a NUL.
    """
    if metrics is None or (buffer_length is not None and buffer_length <= 0):
        logger.error(
            "Invalid parameters. buffer_length: %s, metrics: %r.", buffer_length, metrics
        )
        raise BadParameterError("metrics must be given and buffer length must be positive")

    stats = metrics.network_stats
    tcp_ports = list(metrics.tcp_ports)
    udp_ports = list(metrics.udp_ports)
    connections = list(metrics.connections)
    task_ids = list(metrics.task_ids)

    writer = _BoundedWriter(buffer_length)

    writer.text(
        f'{{"{HEADER_KEY}": {{'
        f'"{REPORT_ID_KEY}": {_u32(report_id)},'
        f'"{VERSION_KEY}": "{_u32(major_version)}.{_u32(minor_version)}"'
        f"}},"
        f'"{METRICS_KEY}": {{'
        f'"{TCP_LISTENING_PORTS_KEY}": {{'
        f'"{PORTS_KEY}": ',
        "part 1",
    )
    writer.array(format_ports_array, tcp_ports, "TCP ports array")

    writer.text(
        f',"{TOTAL_KEY}": {len(tcp_ports)}'
        f"}},"
        f'"{UDP_LISTENING_PORTS_KEY}": {{'
        f'"{PORTS_KEY}": ',
        "part 2",
    )
    writer.array(format_ports_array, udp_ports, "UDP ports array")

    writer.text(
        f',"{TOTAL_KEY}": {len(udp_ports)}'
        f"}},"
        f'"{NETWORK_STATS_KEY}": {{'
        f'"{BYTES_IN_KEY}": {_u32(stats.bytes_received)},'
        f'"{BYTES_OUT_KEY}": {_u32(stats.bytes_sent)},'
        f'"{PKTS_IN_KEY}": {_u32(stats.packets_received)},'
        f'"{PKTS_OUT_KEY}": {_u32(stats.packets_sent)}'
        f"}},"
        f'"{TCP_CONNECTIONS_KEY}": {{'
        f'"{ESTABLISHED_CONNECTIONS_KEY}": {{'
        f'"{CONNECTIONS_KEY}": ',
        "part 3",
    )
    writer.array(format_connections_array, connections, "established connections array")

    writer.text(
        f',"{TOTAL_KEY}": {len(connections)}'
        f"}}}}}},"
        f'"{CUSTOM_METRICS_KEY}": {{'
        f'"stack_high_water_mark": ['
        f'{{"{NUMBER_KEY}": {_u32(metrics.stack_high_water_mark)}}}'
        f"],"
        f'"task_numbers": ['
        f'{{"{NUMBER_LIST_KEY}": ',
        "part 4",
    )
    writer.array(format_task_ids_array, task_ids, "task ids array")

    writer.text("}]}}", "part 5")
    return writer.result()