"""Publishes decoded Zeo packets to an MQTT broker."""

import base64
import json
import logging

import paho.mqtt.client as mqtt

from .config import MqttConfig
from .decoder import Packet
from .filters import filter_60hz
from .payloads import PayloadError, waveform
from .tables import DataType

logger = logging.getLogger(__name__)

# Broker reconnect backoff, handled by paho
RECONNECT_DELAY_MIN = 1  # seconds
RECONNECT_DELAY_MAX = 120  # seconds


def packet_to_message(packet: Packet, filter_waveform: bool = False) -> dict:
    """Build the JSON body published for a packet.

    Waveform packets also carry their samples, run through the 60 Hz
    filter when ``filter_waveform`` is set.
    """
    message = {
        "timestamp": packet.timestamp,
        "subsecond": packet.subsecond,
        "version": packet.version,
        "sequence": packet.sequence,
        "data_type": str(packet.data_type),
        "payload": base64.b64encode(packet.payload).decode("ascii"),
    }
    if packet.data_type is not DataType.Waveform:
        return message

    try:
        samples = waveform(packet)
    except PayloadError as e:
        logger.debug("Waveform without samples: %s", e)
        return message
    if filter_waveform:
        message["samples"] = [round(float(v), 4) for v in filter_60hz(samples)]
    else:
        message["samples"] = samples.tolist()
    return message


class MqttHandler:
    """Sends each decoded packet to ``{root_topic}/{device_id}/{data type}``."""

    def __init__(
        self,
        config: MqttConfig,
        device_id: str,
        filter_waveform: bool = False,
    ) -> None:
        self._config = config
        self._device_id = device_id
        self._filter_waveform = filter_waveform
        self._connected = False

        self._client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2, client_id=f"zeo-bridge-{device_id}"
        )
        self._client.on_connect = self._handle_connect
        self._client.on_disconnect = self._handle_disconnect
        self._client.reconnect_delay_set(RECONNECT_DELAY_MIN, RECONNECT_DELAY_MAX)
        if config.username:
            self._client.username_pw_set(config.username, config.password)

    @property
    def connected(self) -> bool:
        return self._connected

    def topic_for(self, packet: Packet) -> str:
        return f"{self._config.root_topic}/{self._device_id}/{packet.data_type}"

    def connect(self) -> None:
        """Connect and run the paho network loop in its own thread."""
        logger.info("Connecting to %s:%d", self._config.broker, self._config.port)
        self._client.connect(self._config.broker, self._config.port)
        self._client.loop_start()

    def disconnect(self) -> None:
        self._client.loop_stop()
        self._client.disconnect()
        logger.info("Left MQTT broker %s", self._config.broker)

    def publish_packet(self, packet: Packet) -> None:
        """Publish a packet; dropped while the broker is unreachable."""
        if not self._connected:
            logger.debug("Broker offline, dropping %s packet", packet.data_type)
            return

        topic = self.topic_for(packet)
        body = json.dumps(packet_to_message(packet, self._filter_waveform))
        info = self._client.publish(topic, body, qos=self._config.qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.warning("Publish to %s failed: %s", topic, mqtt.error_string(info.rc))
        else:
            logger.debug("Published %s (%d bytes)", topic, len(body))

    def _handle_connect(
        self,
        client: mqtt.Client,
        userdata: object,
        flags: mqtt.ConnectFlags,
        reason_code: mqtt.ReasonCode,
        properties: mqtt.Properties | None,
    ) -> None:
        self._connected = reason_code == 0
        if self._connected:
            logger.info("Connected to MQTT broker %s", self._config.broker)
        else:
            logger.error("MQTT broker refused connection: %s", reason_code)

    def _handle_disconnect(
        self,
        client: mqtt.Client,
        userdata: object,
        disconnect_flags: mqtt.DisconnectFlags,
        reason_code: mqtt.ReasonCode,
        properties: mqtt.Properties | None,
    ) -> None:
        self._connected = False
        if reason_code != 0:
            logger.warning("Lost MQTT broker: %s (reconnecting)", reason_code)
