"""Point-to-point TCP transport carrying discrete messages.

A single connection is set up between a listening endpoint and a connecting
one. Messages of any size travel as runs of fixed-size packets, each packet
prefixed with the number of payload bytes it carries.
"""

from .connection import AcceptPolicy, State, TcpEndpoint
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
    ResolutionFailed,
    SendFailed,
    SocketOptionFailed,
    TcpError,
)
from .packet import Decoder, Packet, decode, encode

__all__ = [
    "AcceptFailed",
    "AcceptPolicy",
    "AlreadyBound",
    "AlreadyConnected",
    "Decoder",
    "EndpointClosed",
    "EndpointTimeout",
    "InvalidPacketLength",
    "ListenFailed",
    "NoBindableAddress",
    "NoConnectableAddress",
    "NotBound",
    "NotConnected",
    "Packet",
    "PeerClosed",
    "RecvFailed",
    "ResolutionFailed",
    "SendFailed",
    "SocketOptionFailed",
    "State",
    "TcpEndpoint",
    "TcpError",
    "decode",
    "encode",
]
