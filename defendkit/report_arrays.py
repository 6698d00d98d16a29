"""JSON array fragments for device defender reports.

Each formatter renders a list of values as a compact JSON array and
checks that the result fits in a buffer of ``buffer_length`` characters,
one of which is reserved for a terminating NUL, as a fixed-size output
buffer would require. ``buffer_length=None`` means there is no limit.
"""

from __future__ import annotations

from typing import Iterable, Protocol

PORT_KEY = "port"
LOCAL_PORT_KEY = "local_port"
REMOTE_ADDR_KEY = "remote_addr"

_UINT16_MASK = 0xFFFF
_UINT32_MASK = 0xFFFFFFFF


class ReportBuilderError(Exception):
    """Base class for errors raised while building a report."""


class BadParameterError(ReportBuilderError, ValueError):
    """Raised when a report builder is given an invalid argument."""


class BufferTooSmallError(ReportBuilderError):
    """Raised when the output does not fit in the given buffer length."""


class _ConnectionLike(Protocol):
    local_port: int
    remote_ip: int
    remote_port: int


def _build_array(elements: Iterable[str], buffer_length: int | None) -> str:
    """Join pre-formatted ``"...,"`` elements into a bounded JSON array."""
    if buffer_length is not None and buffer_length < 0:
        raise BadParameterError(f"buffer length must not be negative, got {buffer_length}")
    remaining = float("inf") if buffer_length is None else buffer_length

    if remaining <= 1:
        raise BufferTooSmallError("buffer cannot hold the array open marker")
    remaining -= 1
    parts = ["["]

    for element in elements:
        if not 0 < len(element) < remaining:
            raise BufferTooSmallError("buffer cannot hold every array element")
        remaining -= len(element)
        parts.append(element)

    if len(parts) > 1:
        # Drop the separator after the last element.
        parts[-1] = parts[-1][:-1]
        remaining += 1

    if remaining <= 1:
        raise BufferTooSmallError("buffer cannot hold the array close marker")
    parts.append("]")
    return "".join(parts)


def format_ports_array(ports: Iterable[int], buffer_length: int | None = None) -> str:
    """Render ports as ``[{"port": N},...]``."""
    elements = (f'{{"{PORT_KEY}": {port & _UINT16_MASK}}},' for port in ports)
    return _build_array(elements, buffer_length)


def _connection_element(conn: _ConnectionLike) -> str:
    ip = conn.remote_ip & _UINT32_MASK
    address = ".".join(str((ip >> shift) & 0xFF) for shift in (24, 16, 8, 0))
    return (
        f'{{"{LOCAL_PORT_KEY}": {conn.local_port & _UINT16_MASK},'
        f'"{REMOTE_ADDR_KEY}": "{address}:{conn.remote_port & _UINT16_MASK}"}},'
    )


def format_connections_array(
    connections: Iterable[_ConnectionLike], buffer_length: int | None = None
) -> str:
    """Render connections as ``[{"local_port": N,"remote_addr": "a.b.c.d:P"},...]``."""
    return _build_array((_connection_element(c) for c in connections), buffer_length)


def format_task_ids_array(task_ids: Iterable[int], buffer_length: int | None = None) -> str:
    """Render task ids as a plain JSON array of numbers."""
    elements = (f"{task_id & _UINT32_MASK}," for task_id in task_ids)
    return _build_array(elements, buffer_length)