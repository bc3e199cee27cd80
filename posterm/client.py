from logging import getLogger
from typing import Optional, Union

from . import messages
from .link import DeviceLink
from .messages import MessageName
from .protocol import Frame, RecordSet

logger = getLogger(__name__)


# every operation is a fresh exchange, failures are raised without retrying
class DeviceClient:
    def __init__(self, host: Optional[str] = None, port: Optional[int] = None, link: Optional[DeviceLink] = None):
        if link is None:
            if host is None or port is None:
                raise TypeError("DeviceClient expects either 'host' and 'port' or 'link' arguments")
            link = DeviceLink(host, port)

        self.link: DeviceLink = link

    def __repr__(self):
        return f"DeviceClient(link={self.link})"

    def __enter__(self) -> "DeviceClient":
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.link.disconnect()

    @property
    def is_connected(self) -> bool:
        return self.link.is_connected

    def disconnect(self):
        self.link.disconnect()

    def send(self, msg_name: Union[MessageName, str], records: Optional[RecordSet] = None):
        frame = Frame(records=messages.with_message_name(msg_name, records))
        logger.debug(f"Request frame: {frame}")
        self.link.send_frame(bytes(frame))

    def receive(self, timeout_ms: int = messages.RESPONSE_TIMEOUT_MS) -> RecordSet:
        response = self.link.receive_frame(timeout_ms)
        logger.debug(f"Response records: {response}")
        return response

    def idle(self, extra: Optional[RecordSet] = None):
        self.link.disconnect()
        self.send(MessageName.Idle, extra)
        self.receive(messages.RESPONSE_TIMEOUT_MS)
        self.link.disconnect()

    def disable(self):
        self.link.disconnect()
        self.send(MessageName.Disable)
        self.receive(messages.RESPONSE_TIMEOUT_MS)
        # link stays open after disabling, unlike idle()

    def show_qr(self, qr_code_data: str):
        logger.info(f"Showing QR code: {qr_code_data!r}")
        self.idle(messages.qr_code(qr_code_data))
