from enum import Enum, unique
from typing import Optional, Union

from .protocol import RecordSet, Tag

RESPONSE_TIMEOUT_MS = 2000


@unique
class MessageName(str, Enum):
    Idle = "IDL"
    Disable = "DIS"


def with_message_name(msg_name: Union[MessageName, str], records: Optional[RecordSet] = None) -> RecordSet:
    request = records.copy() if records is not None else RecordSet()
    request.set_text(Tag.MsgName, msg_name.value if isinstance(msg_name, MessageName) else msg_name)
    return request


def qr_code(qr_code_data: str) -> RecordSet:
    records = RecordSet()
    records.set_text(Tag.QrCodeData, qr_code_data)
    return records
