import enum
import socket
from logging import getLogger
from typing import Optional

from .protocol import ConnectError, Frame, IoTimeoutError, LinkError, MINIMUM_FRAME_LENGTH, RecordSet, \
    ShortFrameError, hexlify

logger = getLogger(__name__)

WRITE_TIMEOUT = 0.250  # seconds
RECEIVE_BUFFER_SIZE = 512


class LinkState(enum.Enum):
    Disconnected = enum.auto()
    Connected = enum.auto()


class DeviceLink:
    # responses must fit a single read of RECEIVE_BUFFER_SIZE bytes

    def __init__(self, host: str, port: int):
        self._host: str = host
        self._port: int = port
        self._socket: Optional[socket.socket] = None

    def __repr__(self):
        return f"DeviceLink(host={self._host!r}, port={self._port}, state={self.state.name})"

    def __enter__(self) -> "DeviceLink":
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.disconnect()

    def __del__(self):
        if getattr(self, "_socket", None) is not None:
            self.disconnect()

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def state(self) -> LinkState:
        return LinkState.Connected if self._socket is not None else LinkState.Disconnected

    @property
    def is_connected(self) -> bool:
        return self._socket is not None

    def connect(self):
        if self._socket is not None:
            return

        try:
            connection = socket.create_connection((self._host, self._port))
        except OSError as e:
            raise ConnectError(f"unable to connect to {self._host}:{self._port}: {e}") from e

        connection.settimeout(WRITE_TIMEOUT)
        self._socket = connection
        logger.info(f"Connected to terminal at {self._host}:{self._port}, current state: {self.state}")

    def disconnect(self):
        connection, self._socket = self._socket, None
        if connection is None:
            return

        try:
            connection.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug(f"Ignoring error on shutdown: {e}")

        try:
            connection.close()
        except OSError as e:
            logger.debug(f"Ignoring error on close: {e}")

        logger.info(f"Disconnected from terminal at {self._host}:{self._port}, current state: {self.state}")

    def send_frame(self, data: bytes):
        self.connect()
        logger.debug(f"Sending {len(data)} bytes: {hexlify(data)}")

        self._socket.settimeout(WRITE_TIMEOUT)
        try:
            self._socket.sendall(data)
        except socket.timeout as e:
            raise IoTimeoutError(f"write timed out after {int(WRITE_TIMEOUT * 1000)} ms") from e
        except OSError as e:
            raise LinkError(f"write failed: {e}") from e

    def receive_frame(self, timeout_ms: int) -> RecordSet:
        if timeout_ms <= 0:
            raise ValueError(f"read timeout must be positive, got {timeout_ms} ms")

        self.connect()

        self._socket.settimeout(timeout_ms / 1000)
        try:
            data = self._socket.recv(RECEIVE_BUFFER_SIZE)
        except socket.timeout as e:
            raise IoTimeoutError(f"read timed out after {timeout_ms} ms") from e
        except OSError as e:
            raise LinkError(f"read failed: {e}") from e

        logger.debug(f"Received {len(data)} bytes: {hexlify(data)}")

        if len(data) < MINIMUM_FRAME_LENGTH:
            raise ShortFrameError(len(data))

        return Frame.from_bytes(data).records
