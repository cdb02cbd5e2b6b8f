from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

from .connection import State, TcpEndpoint
from .constants import DEMO_CONNECT_PORT, DEMO_LISTEN_PORT, DEMO_MESSAGE_LEN, DEMO_PACKET_SIZE
from .resolver import Port

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ExchangeResult:
    listener_received: bytes
    connector_received: bytes


def doubled(data: bytes) -> bytes:
    return bytes((b * 2) % 256 for b in data)


def run_exchange(
    *,
    listen_port: Port = DEMO_LISTEN_PORT,
    connect_port: Port = DEMO_CONNECT_PORT,
    host: str = "localhost",
    packet_size: int = DEMO_PACKET_SIZE,
    message_len: int = DEMO_MESSAGE_LEN,
    timeout: Optional[float] = 10.0,
) -> ExchangeResult:
    """Listener sends ``0..message_len-1``; connector sends it back doubled.

    ``listen_port=0`` picks a free port for the listener.
    """
    listener = TcpEndpoint(packet_size, timeout=timeout)
    listener.bind(listen_port)
    port = listener.local_address[1]
    done = threading.Event()
    received: dict[str, bytes] = {}
    failures: list[BaseException] = []

    def listen_side() -> None:
        try:
            with listener:
                listener.accept()
                listener.send(bytes(i % 256 for i in range(message_len)))
                received["listener"] = listener.recv()
        except BaseException as e:
            failures.append(e)
        finally:
            done.set()

    t = threading.Thread(target=listen_side, name="chunktcp-listener", daemon=True)
    t.start()
    while listener.state is not State.LISTENING and not done.is_set():
        time.sleep(0.01)
    if failures:
        t.join(timeout=timeout)
        raise failures[0]

    try:
        with TcpEndpoint(packet_size, timeout=timeout) as connector:
            connector.bind(connect_port)
            connector.connect(host, port)
            data = connector.recv()
            received["connector"] = data
            connector.send(doubled(data))
    except BaseException:
        listener.close()
        raise
    finally:
        t.join(timeout=timeout)

    if failures:
        raise failures[0]

    logger.info(
        "exchange done; listener got %d bytes, connector got %d bytes",
        len(received["listener"]),
        len(received["connector"]),
    )
    return ExchangeResult(
        listener_received=received["listener"],
        connector_received=received["connector"],
    )


def format_rows(data: bytes, per_row: int = 8) -> str:
    rows = [" ".join(f"{b:>2}" for b in data[i : i + per_row]) for i in range(0, len(data), per_row)]
    return "\n".join(rows)
