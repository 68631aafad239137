"""Tests for port allocation and pid liveness."""

from __future__ import annotations

import os
import socket

import pytest

from attodesk.agent_server.ports import PortAllocator, is_pid_alive, is_port_available
from attodesk.errors import PortExhaustedError


@pytest.fixture
def busy_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    yield sock.getsockname()[1]
    sock.close()


def test_busy_port_is_unavailable(busy_port: int) -> None:
    assert not is_port_available(busy_port)


def test_allocator_skips_busy_then_exhausts(busy_port: int) -> None:
    allocator = PortAllocator(busy_port, busy_port)
    with pytest.raises(PortExhaustedError):
        allocator.allocate()


def test_allocator_never_reuses_a_port() -> None:
    allocator = PortAllocator(40100, 40199)
    first = allocator.allocate()
    second = allocator.allocate()
    assert second > first


def test_invalid_range() -> None:
    with pytest.raises(ValueError):
        PortAllocator(5000, 4000)


def test_is_pid_alive() -> None:
    assert is_pid_alive(os.getpid())
    assert not is_pid_alive(0)
    assert not is_pid_alive(-5)
    assert not is_pid_alive(999_999_999)
