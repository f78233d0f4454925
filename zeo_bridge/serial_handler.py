"""Serial link to the Zeo base station.

The base station only transmits, so the link is opened read-only in
spirit: bytes are pulled off the port, pushed into a DecodeSession and the
decoded packets handed back to the caller.
"""

import logging
import time
from collections import Counter

import serial

from .clock import SubsecondHistogram
from .config import DecoderConfig, SerialConfig
from .decoder import Decoded, DecodeSession, FailureKind, Rejected

logger = logging.getLogger(__name__)

# Backoff between reopen attempts
BACKOFF_FIRST = 1  # seconds
BACKOFF_LIMIT = 60  # seconds


class SerialDisconnected(Exception):
    """The port went away while reading."""


class SerialHandler:
    """Owns the serial port and the decode session fed from it."""

    def __init__(
        self,
        config: SerialConfig,
        decoder_config: DecoderConfig | None = None,
    ) -> None:
        self._config = config
        self._decoder_config = decoder_config or DecoderConfig()
        self._port: serial.Serial | None = None
        self._backoff = BACKOFF_FIRST
        self._rejected_in_row = 0

        # Kept across session restarts so the counts cover the whole run
        self.histogram: SubsecondHistogram | None = None
        if self._decoder_config.track_subseconds:
            self.histogram = SubsecondHistogram()
        self._earlier_decoded = 0
        self._earlier_rejections: Counter[FailureKind] = Counter()
        self._earlier_evicted = 0
        self.session = self._fresh_session()

    @property
    def connected(self) -> bool:
        return self._port is not None and self._port.is_open

    @property
    def decoded(self) -> int:
        """Frames decoded since the handler was created."""
        return self._earlier_decoded + self.session.decoded

    @property
    def rejections(self) -> Counter[FailureKind]:
        return self._earlier_rejections + self.session.rejections

    @property
    def evicted(self) -> int:
        return self._earlier_evicted + self.session.reservoir.evicted

    def open(self) -> None:
        """Open the port at the configured baud rate, 8N1."""
        self._port = serial.Serial(
            port=self._config.port,
            baudrate=self._config.baud,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            timeout=0.1,
        )
        self._backoff = BACKOFF_FIRST
        logger.info("Listening on %s at %d baud", self._config.port, self._config.baud)

    def close(self) -> None:
        if self.connected:
            self._port.close()
            logger.info("Closed %s", self._config.port)
        self._port = None

    def try_reconnect(self) -> bool:
        """
        Close the port, wait, and open it again.

        Decoding restarts from scratch since bytes may have been lost.
        The wait doubles after every failed attempt up to BACKOFF_LIMIT.
        """
        self.close()
        self.restart_session()

        logger.info("Reopening %s in %d seconds", self._config.port, self._backoff)
        time.sleep(self._backoff)
        try:
            self.open()
        except serial.SerialException as e:
            logger.warning("Could not reopen %s: %s", self._config.port, e)
            self._backoff = min(self._backoff * 2, BACKOFF_LIMIT)
            return False
        return True

    def restart_session(self) -> None:
        """Forget buffered bytes, sequence and clock state."""
        old = self.session
        self._earlier_decoded += old.decoded
        self._earlier_rejections.update(old.rejections)
        self._earlier_evicted += old.reservoir.evicted
        self.session = self._fresh_session()
        self._rejected_in_row = 0

    def read_packets(self) -> list[Decoded]:
        """
        Pull whatever the port has buffered and decode it.

        Returns the decoded outcomes; rejected frames are logged only.
        Raises SerialDisconnected when the port fails.
        """
        if not self.connected:
            return []

        try:
            chunk = self._port.read(self._port.in_waiting or 1)
        except serial.SerialException as e:
            logger.error("Read from %s failed: %s", self._config.port, e)
            # Leaves connected False so the caller goes through try_reconnect
            self.close()
            raise SerialDisconnected() from e

        return self.process(chunk) if chunk else []

    def process(self, chunk: bytes) -> list[Decoded]:
        """Decode a chunk of received bytes.

        After max_consecutive_rejections rejected frames in a row the
        session is restarted and the rest of its buffer dropped.
        """
        session = self.session
        session.append(chunk)

        decoded = []
        for outcome in session.drain():
            if not isinstance(outcome, Rejected):
                self._rejected_in_row = 0
                decoded.append(outcome)
            elif self._reject(outcome):
                break
        return decoded

    def _reject(self, outcome: Rejected) -> bool:
        self._rejected_in_row += 1
        if outcome.code is None:
            logger.warning("Dropped frame: %s", outcome.kind.value)
        else:
            logger.warning(
                "Dropped frame: %s (id 0x%02X, %d payload bytes)",
                outcome.kind.value,
                outcome.code,
                len(outcome.payload),
            )

        if self._rejected_in_row < self._decoder_config.max_consecutive_rejections:
            return False
        logger.warning(
            "%d frames rejected in a row, restarting decoder", self._rejected_in_row
        )
        self.restart_session()
        return True

    def _fresh_session(self) -> DecodeSession:
        return DecodeSession(self._decoder_config.capacity, self.histogram)
