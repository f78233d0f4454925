"""Configuration loading and validation."""

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .protocol import BAUD_RATE, MAX_FRAME_SIZE
from .reservoir import DEFAULT_CAPACITY


@dataclass
class SerialConfig:
    port: str
    baud: int = BAUD_RATE


@dataclass
class DecoderConfig:
    capacity: int = DEFAULT_CAPACITY
    max_consecutive_rejections: int = 16
    track_subseconds: bool = False
    filter_waveform: bool = False


@dataclass
class DeviceConfig:
    id: str


@dataclass
class MqttConfig:
    broker: str
    port: int = 1883
    username: str | None = None
    password: str | None = None
    root_topic: str = "zeo"
    qos: int = 0


@dataclass
class Config:
    serial: SerialConfig
    device: DeviceConfig
    decoder: DecoderConfig = field(default_factory=DecoderConfig)
    mqtt: MqttConfig | None = None


def load_config(path: Path) -> Config:
    """Load and validate configuration from YAML file."""
    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    errors = []

    if "serial" not in raw:
        errors.append("missing 'serial' section")
    elif "port" not in raw["serial"]:
        errors.append("serial.port is required")

    if "device" not in raw:
        errors.append("missing 'device' section")
    elif "id" not in raw["device"]:
        errors.append("device.id is required")

    if "mqtt" in raw and "broker" not in (raw["mqtt"] or {}):
        errors.append("mqtt.broker is required when mqtt is configured")
    elif (raw.get("mqtt") or {}).get("qos", 0) not in (0, 1, 2):
        errors.append("mqtt.qos must be 0, 1 or 2")

    decoder_raw = raw.get("decoder") or {}
    capacity = decoder_raw.get("capacity", DEFAULT_CAPACITY)
    # Anything smaller could never hold a whole waveform frame
    if not isinstance(capacity, int) or capacity < MAX_FRAME_SIZE:
        errors.append(
            f"decoder.capacity must be an integer of at least {MAX_FRAME_SIZE}"
        )
    max_rejections = decoder_raw.get("max_consecutive_rejections", 16)
    if not isinstance(max_rejections, int) or max_rejections < 1:
        errors.append("decoder.max_consecutive_rejections must be a positive integer")

    if errors:
        raise ValueError(f"configuration validation failed: {'; '.join(errors)}")

    serial_raw = raw["serial"]
    serial = SerialConfig(
        port=serial_raw["port"],
        baud=serial_raw.get("baud", BAUD_RATE),
    )

    device = DeviceConfig(id=str(raw["device"]["id"]))

    decoder = DecoderConfig(
        capacity=capacity,
        max_consecutive_rejections=max_rejections,
        track_subseconds=bool(decoder_raw.get("track_subseconds", False)),
        filter_waveform=bool(decoder_raw.get("filter_waveform", False)),
    )

    mqtt = None
    if raw.get("mqtt"):
        mqtt_raw = raw["mqtt"]
        mqtt = MqttConfig(
            broker=mqtt_raw["broker"],
            port=mqtt_raw.get("port", 1883),
            username=mqtt_raw.get("username"),
            password=mqtt_raw.get("password"),
            root_topic=mqtt_raw.get("root_topic", "zeo"),
            qos=mqtt_raw.get("qos", 0),
        )

    return Config(serial=serial, device=device, decoder=decoder, mqtt=mqtt)
