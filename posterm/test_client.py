import unittest
from unittest.mock import ANY, MagicMock, call, patch

from .client import DeviceClient
from .link import DeviceLink
from .messages import MessageName, qr_code, with_message_name
from .protocol import Frame, IoTimeoutError, RecordSet, ShortFrameError, Tag

RESPONSE = RecordSet([(Tag.MsgName, b"IDL")])


def sent_records(link: MagicMock, index: int = 0) -> RecordSet:
    return Frame.from_bytes(link.send_frame.call_args_list[index][0][0]).records


class TestMessages(unittest.TestCase):
    def test_merge(self):
        extra = RecordSet([(Tag.MsgName, b"XXX"), (Tag.DisplayTimeInMs, b"\x0B\xB8")])
        merged = with_message_name(MessageName.Idle, extra)
        self.assertEqual(RecordSet([(Tag.MsgName, b"IDL"), (Tag.DisplayTimeInMs, b"\x0B\xB8")]), merged)
        self.assertEqual(b"XXX", extra[Tag.MsgName])

    def test_with_message_name(self):
        self.assertEqual(RecordSet([(Tag.MsgName, b"IDL")]), with_message_name(MessageName.Idle))
        self.assertEqual(RecordSet([(Tag.MsgName, b"ABC")]), with_message_name("ABC"))

    def test_qr_code(self):
        self.assertEqual(RecordSet([(Tag.QrCodeData, b"X")]), qr_code("X"))


class TestDeviceClient(unittest.TestCase):
    def setUp(self):
        self.link = MagicMock(spec=DeviceLink)
        self.link.receive_frame.return_value = RESPONSE
        self.client = DeviceClient(link=self.link)

    def test_construction(self):
        self.assertRaises(TypeError, DeviceClient)
        self.assertRaises(TypeError, DeviceClient, host="127.0.0.1")

        client = DeviceClient(host="127.0.0.1", port=62801)
        self.assertEqual(("127.0.0.1", 62801), (client.link.host, client.link.port))
        self.assertFalse(client.is_connected)

    def test_idle(self):
        self.client.idle()

        self.assertEqual(
            [call.disconnect(), call.send_frame(ANY), call.receive_frame(2000), call.disconnect()],
            self.link.mock_calls,
        )
        self.assertEqual(RecordSet([(Tag.MsgName, b"IDL")]), sent_records(self.link))

    def test_idle_with_extra(self):
        extra = RecordSet([(Tag.MsgName, b"XXX"), (Tag.ProductName, b"coffee")])
        self.client.idle(extra)

        self.assertEqual(RecordSet([(Tag.MsgName, b"IDL"), (Tag.ProductName, b"coffee")]), sent_records(self.link))
        self.assertEqual(RecordSet([(Tag.MsgName, b"XXX"), (Tag.ProductName, b"coffee")]), extra)

    def test_disable(self):
        self.client.disable()

        self.assertEqual([call.disconnect(), call.send_frame(ANY), call.receive_frame(2000)], self.link.mock_calls)
        self.assertEqual(b"\x00\x07\x96\xFB\x01\x03DIS", self.link.send_frame.call_args[0][0])

    def test_show_qr(self):
        self.client.show_qr("X")

        self.assertEqual(RecordSet([(Tag.MsgName, b"IDL"), (Tag.QrCodeData, b"X")]), sent_records(self.link))
        self.assertEqual(call.disconnect(), self.link.mock_calls[-1])

    def test_errors_propagate(self):
        self.link.receive_frame.side_effect = IoTimeoutError("read timed out after 2000 ms")
        self.assertRaises(IoTimeoutError, self.client.idle)
        self.assertEqual([call.disconnect(), call.send_frame(ANY), call.receive_frame(2000)], self.link.mock_calls)

        self.link.reset_mock()
        self.link.receive_frame.side_effect = ShortFrameError(4)
        self.assertRaises(ShortFrameError, self.client.disable)
        self.assertEqual(1, self.link.receive_frame.call_count)

        self.link.reset_mock()
        self.link.send_frame.side_effect = IoTimeoutError("write timed out after 250 ms")
        self.assertRaises(IoTimeoutError, self.client.show_qr, "X")
        self.link.receive_frame.assert_not_called()

    def test_send(self):
        records = RecordSet([(Tag.MsgName, b"IDL"), (Tag.EventName, b"tap")])
        self.client.send("XYZ", records)

        self.assertEqual(RecordSet([(Tag.MsgName, b"XYZ"), (Tag.EventName, b"tap")]), sent_records(self.link))
        self.assertEqual(RecordSet([(Tag.MsgName, b"IDL"), (Tag.EventName, b"tap")]), records)

        self.client.send(MessageName.Disable)
        self.assertEqual(b"\x00\x07\x96\xFB\x01\x03DIS", self.link.send_frame.call_args[0][0])
        self.link.receive_frame.assert_not_called()

    def test_receive(self):
        self.assertEqual(RESPONSE, self.client.receive())
        self.link.receive_frame.assert_called_once_with(2000)

    def test_context_manager(self):
        with self.client as client:
            client.disable()
        self.assertEqual(call.disconnect(), self.link.mock_calls[-1])


class TestDeviceClientSession(unittest.TestCase):
    def setUp(self):
        patcher = patch("posterm.link.socket.create_connection")
        self.create_connection = patcher.start()
        self.addCleanup(patcher.stop)

        self.connection = MagicMock()
        self.connection.recv.return_value = bytes(Frame(records=RESPONSE))
        self.create_connection.return_value = self.connection

        self.client = DeviceClient(host="127.0.0.1", port=62801)
        self.addCleanup(self.client.disconnect)

    def test_idle_disconnects(self):
        self.client.show_qr("1234567890abcdeABCDEqr")

        self.assertFalse(self.client.is_connected)
        self.assertEqual(1, self.create_connection.call_count)

    def test_disable_stays_connected(self):
        self.client.disable()
        self.assertTrue(self.client.is_connected)

        self.client.disable()
        self.assertTrue(self.client.is_connected)
        self.assertEqual(2, self.create_connection.call_count)
        self.assertEqual(1, self.connection.shutdown.call_count)
