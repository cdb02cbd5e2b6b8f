from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict

from .bench import run_benchmark
from .connection import TcpEndpoint
from .constants import (
    DEFAULT_PACKET_SIZE,
    DEMO_CONNECT_PORT,
    DEMO_LISTEN_PORT,
    DEMO_PACKET_SIZE,
)
from .demo import format_rows, run_exchange
from .errors import TcpError

logger = logging.getLogger(__name__)


def _emit(payload: dict, as_json: bool) -> None:
    print(json.dumps(payload, indent=2) if as_json else payload)


def cmd_demo(args: argparse.Namespace) -> int:
    r = run_exchange(
        listen_port=args.listen_port,
        connect_port=args.connect_port,
        host=args.host,
        packet_size=args.packet_size,
        timeout=args.timeout,
    )
    if args.json:
        _emit(
            {
                "role": "demo",
                "listener_received": list(r.listener_received),
                "connector_received": list(r.connector_received),
            },
            True,
        )
        return 0

    print(f"Connector received {len(r.connector_received)} bytes of data")
    print(format_rows(r.connector_received))
    print(f"Listener received {len(r.listener_received)} bytes of data")
    print(format_rows(r.listener_received))
    return 0


def cmd_recv(args: argparse.Namespace) -> int:
    with TcpEndpoint(args.packet_size, timeout=args.timeout) as ep:
        ep.bind(args.port, args.host)
        ep.accept()
        data = ep.recv()

    if args.out == "-":
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
    else:
        with open(args.out, "wb") as out:
            out.write(data)
        _emit({"role": "receiver", "bytes": len(data), "out": args.out}, args.json)
    return 0


def cmd_send(args: argparse.Namespace) -> int:
    with open(args.file, "rb") as f:
        data = f.read()

    with TcpEndpoint(args.packet_size, timeout=args.timeout) as ep:
        ep.bind(args.bind_port)
        ep.connect(args.host, args.port)
        ep.send(data)

    _emit({"role": "sender", "bytes": len(data), "file": args.file}, args.json)
    return 0


def cmd_bench(args: argparse.Namespace) -> int:
    r = run_benchmark(size_bytes=args.size_bytes, packet_size=args.packet_size, timeout=args.timeout)
    _emit({"role": "bench", **asdict(r)}, args.json)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="chunktcp", description="Point-to-point TCP with fixed-size packet framing.")
    p.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(x: argparse.ArgumentParser, packet_size: int = DEFAULT_PACKET_SIZE) -> None:
        x.add_argument("--packet-size", type=int, default=packet_size)
        x.add_argument("--timeout", type=float, default=None, help="seconds; blocks forever when omitted")
        x.add_argument("--json", action="store_true")

    demo = sub.add_parser("demo", help="run the two-thread exchange on this host")
    add_common(demo, DEMO_PACKET_SIZE)
    demo.add_argument("--listen-port", type=int, default=DEMO_LISTEN_PORT)
    demo.add_argument("--connect-port", type=int, default=DEMO_CONNECT_PORT)
    demo.add_argument("--host", default="localhost")
    demo.set_defaults(func=cmd_demo)

    recv = sub.add_parser("recv", help="accept one peer and receive one message")
    add_common(recv)
    recv.add_argument("--host", default=None, help="local address; any interface when omitted")
    recv.add_argument("--port", required=True)
    recv.add_argument("--out", default="-")
    recv.set_defaults(func=cmd_recv)

    send = sub.add_parser("send", help="connect to a peer and send a file as one message")
    add_common(send)
    send.add_argument("--host", required=True)
    send.add_argument("--port", required=True)
    send.add_argument("--bind-port", default="0")
    send.add_argument("--file", required=True)
    send.set_defaults(func=cmd_send)

    bench = sub.add_parser("bench", help="loopback throughput for one message")
    add_common(bench)
    bench.add_argument("--size-bytes", type=int, default=5_000_000)
    bench.set_defaults(func=cmd_bench)

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        return int(args.func(args))
    except TcpError as e:
        logger.error("%s failed: %s", args.cmd, e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
