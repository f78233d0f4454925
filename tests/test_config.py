import tempfile
import unittest
from pathlib import Path

from zeo_bridge.config import load_config
from zeo_bridge.protocol import MAX_FRAME_SIZE


class LoadConfigTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "config.yaml"

    def tearDown(self):
        self._tmp.cleanup()

    def _write(self, text):
        self.path.write_text(text, encoding="utf-8")
        return self.path

    def test_minimal(self):
        config = load_config(
            self._write("serial:\n  port: /dev/ttyUSB0\ndevice:\n  id: bedroom\n")
        )
        self.assertEqual(config.serial.port, "/dev/ttyUSB0")
        self.assertEqual(config.serial.baud, 38400)
        self.assertEqual(config.device.id, "bedroom")
        self.assertEqual(config.decoder.capacity, 4096)
        self.assertFalse(config.decoder.track_subseconds)
        self.assertIsNone(config.mqtt)

    def test_full(self):
        config = load_config(
            self._write(
                "serial:\n  port: COM3\n  baud: 9600\n"
                "device:\n  id: 7\n"
                "decoder:\n  capacity: 1024\n  max_consecutive_rejections: 4\n"
                "  track_subseconds: true\n  filter_waveform: true\n"
                "mqtt:\n  broker: example.org\n  username: zeo\n  password: secret\n"
            )
        )
        self.assertEqual(config.serial.baud, 9600)
        self.assertEqual(config.device.id, "7")
        self.assertEqual(config.decoder.capacity, 1024)
        self.assertEqual(config.decoder.max_consecutive_rejections, 4)
        self.assertTrue(config.decoder.filter_waveform)
        self.assertEqual(config.mqtt.broker, "example.org")
        self.assertEqual(config.mqtt.port, 1883)
        self.assertEqual(config.mqtt.root_topic, "zeo")

    def test_collects_all_errors(self):
        with self.assertRaises(ValueError) as ctx:
            load_config(self._write("mqtt:\n  port: 1883\n"))
        message = str(ctx.exception)
        self.assertIn("missing 'serial' section", message)
        self.assertIn("missing 'device' section", message)
        self.assertIn("mqtt.broker is required", message)

    def test_bad_capacity(self):
        with self.assertRaises(ValueError):
            load_config(
                self._write(
                    "serial:\n  port: x\ndevice:\n  id: y\ndecoder:\n  capacity: 8\n"
                )
            )

    def test_capacity_must_hold_a_waveform_frame(self):
        text = "serial:\n  port: x\ndevice:\n  id: y\ndecoder:\n  capacity: {}\n"
        with self.assertRaises(ValueError) as ctx:
            load_config(self._write(text.format(MAX_FRAME_SIZE - 1)))
        self.assertIn(f"at least {MAX_FRAME_SIZE}", str(ctx.exception))

        config = load_config(self._write(text.format(MAX_FRAME_SIZE)))
        self.assertEqual(config.decoder.capacity, 268)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_config(Path(self._tmp.name) / "missing.yaml")


if __name__ == "__main__":
    unittest.main()
