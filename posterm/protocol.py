import binascii
import enum
from logging import getLogger
from typing import Iterable, Mapping, Optional, Tuple

logger = getLogger(__name__)

FRAME_MAGIC = b"\x96\xFB"

NETWORK_BYTEORDER = "big"

LENGTH_FIELD_SIZE = 2
HEADER_SIZE = LENGTH_FIELD_SIZE + len(FRAME_MAGIC)

# header plus the shortest meaningful response (MsgName with a three-letter name)
MINIMUM_FRAME_LENGTH = 9

MAXIMUM_VALUE_LENGTH = 2**8 - 1
MAXIMUM_PAYLOAD_LENGTH = 2 ** (8 * LENGTH_FIELD_SIZE) - 1 - len(FRAME_MAGIC)


@enum.unique
class Tag(enum.IntEnum):
    MsgName = 0x01
    OperationNum = 0x03
    AmountInMinorCurrencyUnit = 0x04
    KeepaliveIntervalInSecs = 0x05
    OperationTimeoutInSecs = 0x06
    EventName = 0x07
    EventNum = 0x08
    ProductId = 0x09
    QrCodeData = 0x0A
    TcpIpDestination = 0x0B
    OutgoingByteCounter = 0x0C
    SimpleDataBlock = 0x0D
    ConfirmableDataBlock = 0x0E
    ProductName = 0x0F
    PosManagementData = 0x10
    LocalTime = 0x11
    SysInfo = 0x12
    BankingReceipt = 0x13
    DisplayTimeInMs = 0x14

    @classmethod
    def lookup(cls, value: int) -> Optional["Tag"]:
        try:
            return cls(value)
        except ValueError:
            return None


class ProtocolError(Exception):
    pass


class ShortFrameError(ProtocolError, ValueError):
    def __init__(self, actual: int, expected: int = MINIMUM_FRAME_LENGTH):
        super().__init__(f"frame too short: {actual} < {expected} bytes")
        self.actual = actual
        self.expected = expected


class LinkError(OSError):
    pass


class ConnectError(LinkError):
    pass


class IoTimeoutError(LinkError, TimeoutError):
    pass


def encode_int(value: int, length: int = 2) -> bytes:
    return value.to_bytes(length=length, byteorder=NETWORK_BYTEORDER)


def decode_int(data: bytes, signed: bool = False) -> int:
    return int.from_bytes(data, byteorder=NETWORK_BYTEORDER, signed=signed)


def hexlify(data: bytes) -> str:
    result = binascii.hexlify(data).upper()
    return " ".join(chr(odd) + chr(even) for odd, even in zip(result[::2], result[1::2]))


def _check_value(tag: Tag, value: bytes):
    if len(value) > MAXIMUM_VALUE_LENGTH:
        raise ValueError(f"value of {tag.name} too long: {len(value)} > {MAXIMUM_VALUE_LENGTH} bytes")


class RecordSet:
    # equality ignores record order, one value per tag

    def __init__(self, records: Iterable[Tuple[Tag, bytes]] = ()):
        self._data = {}
        for tag, value in records:
            self.set(tag, value)

    def __repr__(self):
        records = ", ".join(f"{tag.name}=bytes.fromhex('{hexlify(value)}')" for tag, value in self._data.items())
        return f"RecordSet({records})"

    def __eq__(self, other: "RecordSet"):
        return isinstance(other, RecordSet) and self._data == other._data

    def __contains__(self, tag: Tag):
        return tag in self._data

    def __getitem__(self, tag: Tag) -> bytes:
        return self._data[tag]

    def __bytes__(self):
        output = bytearray()
        for tag, value in self._data.items():
            _check_value(tag, value)
            output.append(tag)
            output.append(len(value))
            output += value
        return bytes(output)

    @property
    def data(self) -> Mapping[Tag, bytes]:
        return dict(self._data)

    def get(self, tag: Tag) -> Optional[bytes]:
        return self._data.get(tag)

    def get_text(self, tag: Tag) -> Optional[str]:
        value = self._data.get(tag)
        return value.decode("utf-8", errors="replace") if value is not None else None

    def set(self, tag: Tag, value: bytes):
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise TypeError(f"value of {Tag(tag).name} must be bytes-like, got {type(value).__name__}")

        tag, value = Tag(tag), bytes(value)
        _check_value(tag, value)
        self._data[tag] = value

    def set_text(self, tag: Tag, text: str):
        self.set(tag, text.encode("utf-8"))

    def update(self, other: "RecordSet"):
        self._data.update(other._data)

    def copy(self) -> "RecordSet":
        return RecordSet(self._data.items())

    @staticmethod
    def from_bytes(data: bytes) -> "RecordSet":
        records = RecordSet()
        offset = 0

        while len(data) - offset >= 2:
            value_length = data[offset + 1]
            value_begin, value_end = offset + 2, offset + 2 + value_length

            if value_end > len(data):
                break

            tag = Tag.lookup(data[offset])
            if tag is not None:
                records._data[tag] = bytes(data[value_begin:value_end])
            else:
                logger.debug(f"Dropping record with unknown tag 0x{data[offset]:02X} ({value_length} bytes)")

            offset = value_end

        if offset < len(data):
            logger.debug(f"Ignoring {len(data) - offset} trailing bytes: {hexlify(data[offset:])}")

        return records


def encode_frame(payload: bytes) -> bytes:
    if len(payload) > MAXIMUM_PAYLOAD_LENGTH:
        raise ValueError(f"payload too long: {len(payload)} > {MAXIMUM_PAYLOAD_LENGTH} bytes")

    return encode_int(len(payload) + len(FRAME_MAGIC), length=LENGTH_FIELD_SIZE) + FRAME_MAGIC + payload


def decode_frame(data: bytes) -> bytes:
    if len(data) < MINIMUM_FRAME_LENGTH:
        raise ShortFrameError(len(data))

    declared_length, magic, payload = decode_int(data[:2]), data[2:HEADER_SIZE], data[HEADER_SIZE:]

    # length and magic are informational only, everything past the header is the payload
    if magic != FRAME_MAGIC:
        logger.warning(f"Frame magic mismatch: {hexlify(magic)} != {hexlify(FRAME_MAGIC)}")

    if declared_length != len(payload) + len(FRAME_MAGIC):
        logger.warning(f"Frame length mismatch: declared {declared_length}, received {len(payload) + len(FRAME_MAGIC)}")

    return bytes(payload)


class Frame:
    def __init__(self, records: Optional[RecordSet] = None):
        self.records = records if records is not None else RecordSet()

    def __repr__(self):
        return f"Frame(records={self.records})"

    def __eq__(self, other: "Frame"):
        return isinstance(other, Frame) and self.records == other.records

    def __bytes__(self):
        return encode_frame(bytes(self.records))

    @staticmethod
    def from_bytes(data: bytes) -> "Frame":
        return Frame(records=RecordSet.from_bytes(decode_frame(data)))
