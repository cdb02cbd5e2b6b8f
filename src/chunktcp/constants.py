from __future__ import annotations

DEFAULT_PACKET_SIZE = 64
MIN_PACKET_SIZE = 1
MAX_PACKET_SIZE = 255  # length prefix is a single byte

LISTEN_BACKLOG = 1

DEFAULT_ACCEPT_BACKOFF_MS = 10
DEFAULT_ACCEPT_MAX_BACKOFF_MS = 1000

DEMO_LISTEN_PORT = 1234
DEMO_CONNECT_PORT = 4321
DEMO_PACKET_SIZE = 32
DEMO_MESSAGE_LEN = 48
