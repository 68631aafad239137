"""Port allocation and process liveness helpers."""

from __future__ import annotations

import errno
import logging
import os
import socket
import threading

from attodesk.errors import PortExhaustedError

logger = logging.getLogger(__name__)


def is_port_available(port: int, host: str = "127.0.0.1") -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def is_pid_alive(pid: int) -> bool:
    """Signal-0 liveness check. A process we may not signal still exists."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except PermissionError:
        return True
    except OSError as exc:
        if exc.errno == errno.EPERM:
            return True
        return False
    return True


class PortAllocator:
    """Hands out ports from a counter that only moves forward.

    Ports are not reused within the process lifetime, even after the server
    that held one stops.
    """

    def __init__(self, start: int = 4096, end: int = 65535, host: str = "127.0.0.1") -> None:
        if start > end:
            raise ValueError(f"Invalid port range {start}-{end}")
        self._start = start
        self._end = end
        self._host = host
        self._next = start
        self._lock = threading.Lock()

    def _take(self) -> int:
        with self._lock:
            if self._next > self._end:
                raise PortExhaustedError(self._start, self._end)
            port = self._next
            self._next += 1
            return port

    def allocate(self) -> int:
        while True:
            port = self._take()
            if is_port_available(port, self._host):
                return port
            logger.debug("Port %d is in use, skipping", port)
