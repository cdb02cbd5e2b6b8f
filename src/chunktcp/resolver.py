from __future__ import annotations

import logging
import socket
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Tuple, TypeVar, Union

from .errors import ResolutionFailed

logger = logging.getLogger(__name__)

Port = Union[int, str]
T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Candidate:
    family: int
    socktype: int
    proto: int
    sockaddr: Tuple

    def open_socket(self) -> socket.socket:
        return socket.socket(self.family, self.socktype, self.proto)

    @property
    def host(self) -> str:
        return self.sockaddr[0]

    @property
    def port(self) -> int:
        return self.sockaddr[1]


def resolve(host: Optional[str], port: Port, *, passive: bool = False) -> list[Candidate]:
    """Return the stream-socket candidates for ``host``:``port`` in resolver order.

    ``host=None`` with ``passive=True`` means every local interface.
    """
    flags = socket.AI_PASSIVE if passive else 0
    try:
        infos = socket.getaddrinfo(host, str(port), socket.AF_UNSPEC, socket.SOCK_STREAM, 0, flags)
    except socket.gaierror as e:
        raise ResolutionFailed(e.errno or 0, e.strerror or str(e)) from e

    candidates: list[Candidate] = []
    seen = set()
    for family, socktype, proto, _, sockaddr in infos:
        # hosts files often list the same address twice
        key = (family, in_addr(family, sockaddr), sockaddr[1:])
        if key in seen:
            continue
        seen.add(key)
        candidates.append(Candidate(family, socktype, proto, sockaddr))
    logger.debug("resolved %s:%s -> %s", host or "*", port, [c.sockaddr for c in candidates])
    return candidates


def first_usable(candidates: Iterable[Candidate], attempt: Callable[[Candidate], T]) -> Optional[T]:
    """Run ``attempt`` on each candidate in order and return the first result.

    ``attempt`` signals an unusable candidate by raising ``OSError`` after
    releasing whatever it opened. Returns None when every candidate fails.
    """
    for candidate in candidates:
        try:
            return attempt(candidate)
        except OSError as e:
            logger.debug("candidate %s unusable: %s", candidate.sockaddr, e)
    return None


def in_addr(family: int, sockaddr: Tuple) -> bytes:
    """Packed binary host address of an AF_INET or AF_INET6 socket address."""
    if family == socket.AF_INET:
        return socket.inet_pton(socket.AF_INET, sockaddr[0])
    if family == socket.AF_INET6:
        return socket.inet_pton(socket.AF_INET6, sockaddr[0].split("%", 1)[0])
    raise ValueError(f"unsupported address family: {family}")
