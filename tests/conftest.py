from __future__ import annotations

import os
import socket
import threading
import time

import pytest

from chunktcp.connection import State, TcpEndpoint
from chunktcp.constants import DEFAULT_PACKET_SIZE


def wait_listening(ep: TcpEndpoint, deadline_s: float = 5.0) -> None:
    end = time.monotonic() + deadline_s
    while ep.state is not State.LISTENING:
        if time.monotonic() > end:
            raise AssertionError(f"{ep!r} never started listening")
        time.sleep(0.005)


def open_fds() -> int | None:
    if not os.path.isdir("/proc/self/fd"):
        return None
    return len(os.listdir("/proc/self/fd"))


@pytest.fixture
def connected_pair():
    endpoints: list[TcpEndpoint] = []

    def make(packet_size: int = DEFAULT_PACKET_SIZE, timeout: float = 5.0):
        listener = TcpEndpoint(packet_size, timeout=timeout)
        connector = TcpEndpoint(packet_size, timeout=timeout)
        endpoints.extend([listener, connector])

        listener.bind(0, "127.0.0.1")
        connector.bind(0, "127.0.0.1")
        t = threading.Thread(target=listener.accept, daemon=True)
        t.start()
        wait_listening(listener)
        connector.connect("127.0.0.1", listener.local_address[1])
        t.join(timeout)
        assert listener.is_connected
        return listener, connector

    yield make

    for ep in endpoints:
        ep.close()


def warm_resolver() -> None:
    # the libc resolver may keep descriptors open after its first use
    socket.getaddrinfo("127.0.0.1", 0, socket.AF_UNSPEC, socket.SOCK_STREAM)
    socket.getaddrinfo(None, 0, socket.AF_UNSPEC, socket.SOCK_STREAM, 0, socket.AI_PASSIVE)
