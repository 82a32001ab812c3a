"""Inbound airrohr report model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Mapping, Tuple

from bridge.validators import validate_measurement


@dataclass(frozen=True)
class AirrohrDevice:
    esp8266id: str
    software_version: str

    @property
    def name(self) -> str:
        return f"airrohr-{self.esp8266id}"


@dataclass(frozen=True)
class Channel:
    value_type: str
    value: str


@dataclass(frozen=True)
class Measurement:
    device: AirrohrDevice
    channels: Tuple[Channel, ...]

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Measurement":
        """Build a measurement from the decoded JSON body; raises ValueError."""
        err = validate_measurement(payload)
        if err:
            raise ValueError(err)
        channels: List[Channel] = [
            Channel(entry["value_type"], str(entry["value"])) for entry in payload["sensordatavalues"]
        ]
        device = AirrohrDevice(str(payload["esp8266id"]), payload["software_version"])
        return cls(device, tuple(channels))
