"""Command line entry point: decode a Zeo base station and forward packets."""

import argparse
import logging
import signal
import sys
import time
from collections.abc import Callable
from pathlib import Path

import serial

from .config import Config, load_config
from .decoder import Packet
from .mqtt_handler import MqttHandler
from .serial_handler import SerialDisconnected, SerialHandler

logger = logging.getLogger(__name__)

OPEN_RETRY_DELAY = 5  # seconds
REPLAY_CHUNK = 512  # bytes per read when replaying a capture


def main() -> None:
    """Entry point for zeo-bridge command."""
    parser = argparse.ArgumentParser(
        description="Decode the raw data output of a Zeo base station"
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument(
        "--replay",
        type=Path,
        metavar="CAPTURE",
        help="Decode a file of raw bytes captured from the port, then exit",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log every frame",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
    except FileNotFoundError:
        logger.error("Configuration file not found: %s", args.config)
        sys.exit(1)
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)

    if args.replay is not None:
        replay(config, args.replay)
    else:
        run(config)


def log_packet(packet: Packet) -> None:
    logger.info(
        "%s #%d at %s+%d (v%s): %s",
        packet.data_type,
        packet.sequence,
        packet.timestamp,
        packet.subsecond,
        packet.version,
        packet.payload.hex(" ").upper(),
    )


def _packet_sink(config: Config) -> tuple[Callable[[Packet], None], MqttHandler | None]:
    """Return where decoded packets go, plus the MQTT handler if one is used."""
    if config.mqtt is None:
        return log_packet, None
    handler = MqttHandler(
        config=config.mqtt,
        device_id=config.device.id,
        filter_waveform=config.decoder.filter_waveform,
    )
    return handler.publish_packet, handler


def _log_summary(serial_handler: SerialHandler) -> None:
    rejected = {kind.value: n for kind, n in serial_handler.rejections.items()}
    logger.info(
        "%d packets decoded, rejected: %s, reservoir evicted %d bytes",
        serial_handler.decoded,
        rejected or "none",
        serial_handler.evicted,
    )
    histogram = serial_handler.histogram
    if histogram is not None:
        logger.info(
            "Sub-second values: %s (unexpected: %s)",
            dict(sorted(histogram.counts.items())),
            histogram.unexpected() or "none",
        )


def replay(config: Config, capture: Path) -> None:
    """Decode a raw capture file in serial-sized chunks."""
    serial_handler = SerialHandler(config.serial, config.decoder)
    sink, mqtt_handler = _packet_sink(config)
    if mqtt_handler is not None:
        mqtt_handler.connect()
    try:
        with open(capture, "rb") as f:
            while True:
                chunk = f.read(REPLAY_CHUNK)
                if not chunk:
                    break
                for outcome in serial_handler.process(chunk):
                    sink(outcome.packet)
    except OSError as e:
        logger.error("Cannot read capture %s: %s", capture, e)
        sys.exit(1)
    finally:
        if mqtt_handler is not None:
            mqtt_handler.disconnect()
        _log_summary(serial_handler)


def run(config: Config) -> None:
    """Read the serial port until SIGINT or SIGTERM."""
    serial_handler = SerialHandler(config.serial, config.decoder)
    sink, mqtt_handler = _packet_sink(config)

    stop = False

    def request_stop(signum, frame):
        nonlocal stop
        logger.info("Stopping on signal %d", signum)
        stop = True

    signal.signal(signal.SIGINT, request_stop)
    signal.signal(signal.SIGTERM, request_stop)

    try:
        while not stop:
            try:
                serial_handler.open()
                break
            except serial.SerialException as e:
                logger.error(
                    "Cannot open %s: %s (retrying in %ds)",
                    config.serial.port,
                    e,
                    OPEN_RETRY_DELAY,
                )
                time.sleep(OPEN_RETRY_DELAY)
        if stop:
            return

        if mqtt_handler is not None:
            mqtt_handler.connect()
        logger.info("Decoding device '%s'", config.device.id)

        while not stop:
            if not serial_handler.connected:
                if serial_handler.try_reconnect():
                    logger.info("Serial link restored")
                continue
            try:
                for outcome in serial_handler.read_packets():
                    sink(outcome.packet)
            except SerialDisconnected:
                logger.warning("Serial link lost")

    except Exception as e:
        logger.error("Unexpected error: %s", e)
        sys.exit(1)
    finally:
        if mqtt_handler is not None:
            mqtt_handler.disconnect()
        serial_handler.close()
        _log_summary(serial_handler)


if __name__ == "__main__":
    main()
