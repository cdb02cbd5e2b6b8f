from __future__ import annotations

import contextlib
import enum
import errno
import logging
import socket
import threading
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from .constants import (
    DEFAULT_ACCEPT_BACKOFF_MS,
    DEFAULT_ACCEPT_MAX_BACKOFF_MS,
    DEFAULT_PACKET_SIZE,
    LISTEN_BACKLOG,
)
from .errors import (
    AcceptFailed,
    AlreadyBound,
    AlreadyConnected,
    EndpointClosed,
    EndpointTimeout,
    InvalidPacketLength,
    ListenFailed,
    NoBindableAddress,
    NoConnectableAddress,
    NotBound,
    NotConnected,
    PeerClosed,
    RecvFailed,
    SendFailed,
    SocketOptionFailed,
)
from .packet import Decoder, check_packet_size, encode
from .resolver import Candidate, Port, first_usable, resolve

logger = logging.getLogger(__name__)

# accept(2) failures that say nothing about the listening socket itself
TRANSIENT_ACCEPT_ERRORS = frozenset(
    getattr(errno, name)
    for name in (
        "ECONNABORTED",
        "EINTR",
        "EAGAIN",
        "EWOULDBLOCK",
        "EPROTO",
        "EMFILE",
        "ENFILE",
        "ENOBUFS",
        "ENOMEM",
        "EPERM",
        "ENETDOWN",
        "EHOSTUNREACH",
        "ENETUNREACH",
        "ENOPROTOOPT",
        "EOPNOTSUPP",
    )
    if hasattr(errno, name)
)


class State(enum.Enum):
    UNBOUND = "unbound"
    BOUND = "bound"
    LISTENING = "listening"
    CONNECTED = "connected"
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class AcceptPolicy:
    """How ``TcpEndpoint.accept`` reacts to a failed accept.

    ``max_attempts=None`` keeps retrying transient failures forever.
    """

    max_attempts: Optional[int] = None
    backoff_ms: int = DEFAULT_ACCEPT_BACKOFF_MS
    max_backoff_ms: int = DEFAULT_ACCEPT_MAX_BACKOFF_MS

    def is_transient(self, code: int) -> bool:
        return code in TRANSIENT_ACCEPT_ERRORS

    def exhausted(self, failures: int) -> bool:
        return self.max_attempts is not None and failures >= self.max_attempts

    def delay_s(self, failures: int) -> float:
        if self.backoff_ms <= 0:
            return 0.0
        delay_ms = min(self.backoff_ms * 2 ** (failures - 1), self.max_backoff_ms)
        return delay_ms / 1000.0


class TcpEndpoint:
    """One end of a single point-to-point TCP connection.

    Messages of any length are carried as runs of ``packet_size``-byte
    packets (see ``chunktcp.packet``). Both ends must use the same size.
    """

    def __init__(
        self,
        packet_size: int = DEFAULT_PACKET_SIZE,
        *,
        timeout: Optional[float] = None,
        accept_policy: Optional[AcceptPolicy] = None,
    ):
        self.packet_size = check_packet_size(packet_size)
        self.timeout = timeout
        self.accept_policy = accept_policy or AcceptPolicy()

        self._local: Optional[socket.socket] = None
        self._peer: Optional[socket.socket] = None
        self._listening = False
        self._closed = False

        self._send_lock = threading.Lock()
        self._recv_lock = threading.Lock()

    def __enter__(self) -> "TcpEndpoint":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<TcpEndpoint packet_size={self.packet_size} state={self.state.value}>"

    @property
    def is_bound(self) -> bool:
        return self._local is not None

    @property
    def is_connected(self) -> bool:
        return self._peer is not None

    @property
    def state(self) -> State:
        if self._closed:
            return State.CLOSED
        if self._peer is not None:
            return State.CONNECTED
        if self._listening:
            return State.LISTENING
        if self._local is not None:
            return State.BOUND
        return State.UNBOUND

    @property
    def local_address(self) -> Optional[Tuple]:
        return self._local.getsockname() if self._local is not None else None

    @property
    def peer_address(self) -> Optional[Tuple]:
        return self._peer.getpeername() if self._peer is not None else None

    def bind(self, port: Port, host: Optional[str] = None) -> None:
        if self._closed:
            raise EndpointClosed()
        if self._local is not None:
            raise AlreadyBound()

        sock = first_usable(resolve(host, port, passive=True), self._bind_candidate)
        if sock is None:
            raise NoBindableAddress()

        self._local = sock
        logger.info("bound to %s", sock.getsockname())

    def _bind_candidate(self, candidate: Candidate) -> socket.socket:
        sock = candidate.open_socket()
        try:
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            except OSError as e:
                raise SocketOptionFailed(e.errno or 0) from e
            sock.bind(candidate.sockaddr)
        except BaseException:
            sock.close()
            raise
        return sock

    def accept(self) -> None:
        """Block until one peer connects; this endpoint never accepts another."""
        local = self._require_establishable()

        try:
            local.listen(LISTEN_BACKLOG)
        except OSError as e:
            raise ListenFailed(e.errno or 0) from e
        self._listening = True
        local.settimeout(self.timeout)
        logger.info("listening on %s", local.getsockname())

        policy = self.accept_policy
        failures = 0
        while True:
            try:
                peer, addr = local.accept()
                break
            except TimeoutError as e:
                raise EndpointTimeout("accept") from e
            except OSError as e:
                if self._closed:
                    raise EndpointClosed() from e
                code = e.errno or 0
                failures += 1
                if not policy.is_transient(code):
                    raise AcceptFailed(code) from e
                if policy.exhausted(failures):
                    raise AcceptFailed(code, f"gave up after {failures} failed accepts") from e
                delay = policy.delay_s(failures)
                logger.warning("accept failed (%s); retry %d in %.3fs", e, failures, delay)
                time.sleep(delay)

        if self._closed:
            peer.close()
            raise EndpointClosed()
        self._adopt(peer, addr)

    def connect(self, remote_host: str, remote_port: Port) -> None:
        self._require_establishable()

        result = first_usable(resolve(remote_host, remote_port), self._connect_candidate)
        if result is None:
            raise NoConnectableAddress()

        self._adopt(*result)

    def _connect_candidate(self, candidate: Candidate) -> Tuple[socket.socket, Tuple]:
        sock = candidate.open_socket()
        try:
            sock.settimeout(self.timeout)
            sock.connect(candidate.sockaddr)
        except BaseException:
            sock.close()
            raise
        return sock, candidate.sockaddr

    def _require_establishable(self) -> socket.socket:
        if self._closed:
            raise EndpointClosed()
        if self._local is None:
            raise NotBound()
        if self._peer is not None:
            raise AlreadyConnected()
        return self._local

    def _adopt(self, peer: socket.socket, remote) -> None:
        self._peer = peer
        peer.settimeout(self.timeout)
        logger.info("connected to %s", remote)

    def send(self, data: bytes) -> None:
        peer = self._require_peer()
        with self._send_lock:
            sent = 0
            for packet in encode(data, self.packet_size):
                try:
                    peer.sendall(packet)
                except TimeoutError as e:
                    raise EndpointTimeout("send") from e
                except OSError as e:
                    raise SendFailed(e.errno or 0) from e
                sent += 1
        logger.debug("sent %d bytes in %d packets", len(data), sent)

    def recv(self) -> bytes:
        peer = self._require_peer()
        with self._recv_lock:
            decoder = Decoder(self.packet_size)
            received = 1
            while not decoder.feed(self._recv_packet(peer)):
                received += 1
            data = decoder.message()
        logger.debug("received %d bytes in %d packets", len(data), received)
        return data

    def _recv_packet(self, peer: socket.socket) -> bytes:
        buf = bytearray()
        while len(buf) < self.packet_size:
            try:
                chunk = peer.recv(self.packet_size - len(buf))
            except TimeoutError as e:
                raise EndpointTimeout("recv") from e
            except OSError as e:
                raise RecvFailed(e.errno or 0) from e
            if not chunk:
                if not buf:
                    raise PeerClosed()
                raise InvalidPacketLength(
                    f"invalid received packet length: stream ended after {len(buf)} of {self.packet_size} bytes"
                )
            buf += chunk
        return bytes(buf)

    def _require_peer(self) -> socket.socket:
        peer = self._peer
        if peer is None:
            raise NotConnected()
        return peer

    def close(self) -> None:
        was_closed, self._closed = self._closed, True
        peer, self._peer = self._peer, None
        local, self._local = self._local, None
        try:
            if peer is not None:
                # wake any thread still blocked in recv/send
                with contextlib.suppress(OSError):
                    peer.shutdown(socket.SHUT_RDWR)
                peer.close()
        finally:
            if local is not None:
                # a listening socket wakes a blocked accept this way
                with contextlib.suppress(OSError):
                    local.shutdown(socket.SHUT_RDWR)
                local.close()
        if not was_closed:
            logger.info("closed")
