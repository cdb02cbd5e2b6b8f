from __future__ import annotations


class TcpError(Exception):
    """Base error. ``code`` is the OS errno when one is available."""

    def __init__(self, code: int, message: str):
        super().__init__(code, message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class AlreadyBound(TcpError):
    def __init__(self) -> None:
        super().__init__(-1, "socket already bound")


class NotBound(TcpError):
    def __init__(self) -> None:
        super().__init__(-2, "socket unbound")


class AlreadyConnected(TcpError):
    def __init__(self) -> None:
        super().__init__(-1, "socket already connected")


class NotConnected(TcpError):
    def __init__(self) -> None:
        super().__init__(-2, "socket disconnected")


class NoBindableAddress(TcpError):
    def __init__(self) -> None:
        super().__init__(1, "couldn't bind to any address")


class NoConnectableAddress(TcpError):
    def __init__(self) -> None:
        super().__init__(1, "couldn't connect to any address")


class ResolutionFailed(TcpError):
    pass


class SocketOptionFailed(TcpError):
    def __init__(self, code: int) -> None:
        super().__init__(code, "couldn't set socket options")


class ListenFailed(TcpError):
    def __init__(self, code: int) -> None:
        super().__init__(code, "couldn't listen for connections")


class AcceptFailed(TcpError):
    def __init__(self, code: int, message: str = "couldn't accept a connection") -> None:
        super().__init__(code, message)


class SendFailed(TcpError):
    def __init__(self, code: int) -> None:
        super().__init__(code, "couldn't send data")


class RecvFailed(TcpError):
    def __init__(self, code: int) -> None:
        super().__init__(code, "couldn't receive data")


class InvalidPacketLength(TcpError):
    def __init__(self, message: str = "invalid received packet length") -> None:
        super().__init__(1, message)


class PeerClosed(InvalidPacketLength):
    def __init__(self) -> None:
        super().__init__("peer closed the connection")


class EndpointTimeout(TcpError):
    def __init__(self, operation: str) -> None:
        super().__init__(-3, f"{operation} timed out")
        self.operation = operation


class EndpointClosed(TcpError):
    def __init__(self) -> None:
        super().__init__(-4, "endpoint closed")
