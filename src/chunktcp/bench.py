from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Optional

from .connection import State, TcpEndpoint
from .constants import DEFAULT_PACKET_SIZE
from .packet import packet_count


@dataclass(frozen=True, slots=True)
class BenchmarkResult:
    bytes_transferred: int
    packet_size: int
    packets: int
    duration_s: float
    throughput_mbps: float


def run_benchmark(
    *,
    size_bytes: int,
    packet_size: int = DEFAULT_PACKET_SIZE,
    timeout: Optional[float] = 30.0,
) -> BenchmarkResult:
    payload = b"A" * size_bytes

    recv_ep = TcpEndpoint(packet_size, timeout=timeout)
    recv_ep.bind(0, "127.0.0.1")
    recv_port = recv_ep.local_address[1]

    recv_holder: dict[str, bytes] = {}
    errors: list[BaseException] = []

    def recv_runner():
        try:
            with recv_ep:
                recv_ep.accept()
                recv_holder["data"] = recv_ep.recv()
        except BaseException as e:
            errors.append(e)

    t = threading.Thread(target=recv_runner, daemon=True)
    t.start()
    while recv_ep.state is not State.LISTENING and t.is_alive():
        time.sleep(0.01)

    try:
        with TcpEndpoint(packet_size, timeout=timeout) as send_ep:
            send_ep.bind(0, "127.0.0.1")
            send_ep.connect("127.0.0.1", recv_port)
            start = time.monotonic()
            send_ep.send(payload)
            t.join(timeout=timeout)
            duration_s = max(0.001, time.monotonic() - start)
    except BaseException:
        recv_ep.close()
        t.join(timeout=timeout)
        raise

    if errors:
        raise errors[0]
    if len(recv_holder.get("data", b"")) != size_bytes:
        raise RuntimeError(f"benchmark received {len(recv_holder.get('data', b''))} of {size_bytes} bytes")

    throughput_mbps = (size_bytes * 8 / 1_000_000) / duration_s

    return BenchmarkResult(
        bytes_transferred=size_bytes,
        packet_size=packet_size,
        packets=packet_count(size_bytes, packet_size),
        duration_s=duration_s,
        throughput_mbps=throughput_mbps,
    )
