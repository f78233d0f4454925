import unittest
from unittest.mock import MagicMock, patch

import serial

from zeo_bridge.config import DecoderConfig, SerialConfig
from zeo_bridge.decoder import Decoded, FailureKind
from zeo_bridge.protocol import encode_frame
from zeo_bridge.serial_handler import SerialDisconnected, SerialHandler
from zeo_bridge.tables import DataType

SQI = DataType.Sqi.value


def bad_checksum_frame(sequence):
    frame = bytearray(encode_frame(SQI, b"\x01\x02\x03\x04", sequence=sequence))
    frame[2] ^= 0xFF
    return bytes(frame)


class SerialHandlerTests(unittest.TestCase):
    def setUp(self):
        self.config = SerialConfig(port="/dev/ttyUSB0")

    @patch("zeo_bridge.serial_handler.serial.Serial")
    def test_open_uses_8n1(self, serial_cls):
        handler = SerialHandler(self.config)
        handler.open()
        serial_cls.assert_called_once_with(
            port="/dev/ttyUSB0",
            baudrate=38400,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            timeout=0.1,
        )
        self.assertTrue(handler.connected)

    @patch("zeo_bridge.serial_handler.serial.Serial")
    def test_read_packets(self, serial_cls):
        data = encode_frame(SQI, b"\x01\x00\x00\x00", sequence=1)
        port = serial_cls.return_value
        port.is_open = True
        port.in_waiting = len(data)
        port.read.return_value = data

        handler = SerialHandler(self.config)
        handler.open()
        outcomes = handler.read_packets()

        port.read.assert_called_once_with(len(data))
        self.assertEqual(len(outcomes), 1)
        self.assertIsInstance(outcomes[0], Decoded)
        self.assertEqual(outcomes[0].packet.sequence, 1)

    def test_read_when_closed(self):
        self.assertEqual(SerialHandler(self.config).read_packets(), [])

    @patch("zeo_bridge.serial_handler.serial.Serial")
    def test_read_error_raises_disconnected(self, serial_cls):
        port = serial_cls.return_value
        port.is_open = True
        port.in_waiting = 0
        port.read.side_effect = serial.SerialException("device gone")

        handler = SerialHandler(self.config)
        handler.open()
        with self.assertRaises(SerialDisconnected):
            handler.read_packets()
        self.assertFalse(handler.connected)
        port.close.assert_called_once_with()

    def test_rejections_are_dropped(self):
        handler = SerialHandler(self.config)
        with self.assertLogs("zeo_bridge.serial_handler", level="WARNING"):
            outcomes = handler.process(
                bad_checksum_frame(1) + encode_frame(SQI, b"\x01\x00\x00\x00", sequence=2)
            )
        self.assertEqual([o.packet.sequence for o in outcomes], [2])

    def test_consecutive_rejections_restart_session(self):
        handler = SerialHandler(
            self.config, DecoderConfig(max_consecutive_rejections=2)
        )
        first = handler.session
        outcomes = handler.process(
            bad_checksum_frame(1)
            + bad_checksum_frame(2)
            + encode_frame(SQI, b"\x01\x00\x00\x00", sequence=3)
        )

        self.assertEqual(outcomes, [])
        self.assertIsNot(handler.session, first)
        self.assertEqual(len(handler.session.reservoir), 0)

    def test_totals_cover_restarted_sessions(self):
        handler = SerialHandler(
            self.config, DecoderConfig(max_consecutive_rejections=2)
        )
        handler.process(encode_frame(SQI, b"\x01\x00\x00\x00", sequence=1))
        with self.assertLogs("zeo_bridge.serial_handler", level="WARNING"):
            handler.process(
                encode_frame(SQI, b"\x01\x00\x00\x00", sequence=2)
                + bad_checksum_frame(3)
                + bad_checksum_frame(4)
            )

        self.assertEqual(handler.session.decoded, 0)
        self.assertEqual(handler.decoded, 2)
        self.assertEqual(handler.rejections, {FailureKind.CHECKSUM_MISMATCH: 2})
        self.assertEqual(handler.evicted, 0)

    def test_histogram_survives_session_reset(self):
        handler = SerialHandler(self.config, DecoderConfig(track_subseconds=True))
        histogram = handler.histogram
        handler.process(encode_frame(SQI, b"\x01\x00\x00\x00", subsecond=4))
        handler.restart_session()
        self.assertIs(handler.session.histogram, histogram)
        self.assertEqual(histogram.counts[4], 1)

    @patch("zeo_bridge.serial_handler.time.sleep")
    @patch("zeo_bridge.serial_handler.serial.Serial")
    def test_reconnect_backoff(self, serial_cls, sleep):
        serial_cls.side_effect = serial.SerialException("no port")
        handler = SerialHandler(self.config)

        self.assertFalse(handler.try_reconnect())
        self.assertFalse(handler.try_reconnect())
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [1, 2])


if __name__ == "__main__":
    unittest.main()
