"""Platform services used by the TLS layer: memory, sockets, locking and entropy.

These helpers supply zeroed allocation, plain socket I/O, a mutex with
lock/unlock semantics and a source of random bytes.
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class EntropySourceError(RuntimeError):
    """Raised when the random source cannot produce the requested bytes."""


class _Sendable(Protocol):
    def send(self, data: bytes, /) -> int: ...


class _Receivable(Protocol):
    def recv(self, bufsize: int, /) -> bytes: ...


def platform_calloc(nmemb: int, size: int) -> bytearray | None:
    """Return a zero-filled buffer of ``nmemb * size`` bytes.

    Returns ``None`` when either count is zero or the total size would not
    fit in a machine-sized length.
    """
    if nmemb < 0 or size < 0:
        raise ValueError(f"allocation counts must not be negative, got {nmemb} and {size}")
    total = nmemb * size
    if total == 0 or total > sys.maxsize:
        return None
    return bytearray(total)


def platform_send(sock: _Sendable, data: bytes) -> int:
    """Send ``data`` on ``sock`` and return the number of bytes sent."""
    if sock is None:
        raise ValueError("a socket is required")
    if data is None:
        raise ValueError("data to send is required")
    return sock.send(data)


def platform_recv(sock: _Receivable, length: int) -> bytes:
    """Receive up to ``length`` bytes from ``sock``."""
    if sock is None:
        raise ValueError("a socket is required")
    if length < 0:
        raise ValueError(f"length must not be negative, got {length}")
    return sock.recv(length)


class PlatformMutex:
    """A non-recursive mutex; also usable as a context manager."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def lock(self) -> None:
        """Block until the mutex is held by the caller."""
        if not self._lock.acquire():
            raise RuntimeError("failed to take mutex")

    def unlock(self) -> None:
        """Release the mutex; it must currently be held."""
        try:
            self._lock.release()
        except RuntimeError as exc:
            raise RuntimeError("mutex is not locked") from exc

    def free(self) -> None:
        """Release resources held by the mutex; nothing needs to be done."""

    def __enter__(self) -> PlatformMutex:
        self.lock()
        return self

    def __exit__(self, *args: Any) -> None:
        self.unlock()


def entropy_poll(length: int) -> bytes:
    """Return ``length`` random bytes from the system's random source."""
    if length < 0:
        raise ValueError(f"length must not be negative, got {length}")
    try:
        return os.urandom(length)
    except (OSError, NotImplementedError) as exc:
        logger.error("Entropy source failed: %s", exc)
        raise EntropySourceError("entropy source failed") from exc


def hardware_poll(length: int) -> bytes:
    """Return ``length`` random bytes; the same source as :func:`entropy_poll`."""
    return entropy_poll(length)