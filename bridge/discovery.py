"""Home Assistant MQTT discovery payloads for airrohr channels."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import List

from bridge.measurement import AirrohrDevice
from catalog.sensor_catalog import SensorMeta

DISCOVERY_PREFIX = "homeassistant"
STATE_NAMESPACE = "airrohr"

MANUFACTURER = "Open Knowledge Lab Stuttgart a.o. (Code for Germany)"
MODEL = "Particulate matter sensor"


@dataclass(frozen=True)
class DeviceDescriptor:
    identifiers: List[str]
    manufacturer: str
    model: str
    name: str
    sw_version: str


@dataclass(frozen=True)
class EntityDescriptor:
    name: str
    state_topic: str
    unique_id: str
    device_class: str
    unit_of_measurement: str
    value_template: str


@dataclass(frozen=True)
class DiscoveryConfig:
    device: DeviceDescriptor
    entity: EntityDescriptor

    def as_dict(self) -> dict:
        # entity fields sit next to "device", not nested
        out = {"device": asdict(self.device)}
        out.update(asdict(self.entity))
        return out

    def to_payload(self) -> bytes:
        return json.dumps(self.as_dict(), ensure_ascii=False).encode("utf-8")


def state_topic(namespace: str, device_name: str, value_type: str) -> str:
    return f"{namespace}/{device_name}/{value_type}"


def discovery_topic(prefix: str, device_name: str, value_type: str) -> str:
    return f"{prefix}/sensor/{device_name}/{value_type}/config"


def build_device(device: AirrohrDevice) -> DeviceDescriptor:
    # Several aliases so older and newer discovery matchers both group the entities.
    identifiers = [
        device.name,
        f"Feinstaubsensor-{device.esp8266id}",
        f"Particulate Matter {device.esp8266id}",
    ]
    return DeviceDescriptor(
        identifiers=identifiers,
        manufacturer=MANUFACTURER,
        model=MODEL,
        name=device.name,
        sw_version=device.software_version,
    )


def build(device: AirrohrDevice, value_type: str, meta: SensorMeta, namespace: str = STATE_NAMESPACE) -> DiscoveryConfig:
    entity_id = f"{device.name}-{value_type}"
    entity = EntityDescriptor(
        name=entity_id,
        state_topic=state_topic(namespace, device.name, value_type),
        unique_id=entity_id,
        device_class=meta.device_class,
        unit_of_measurement=meta.unit_of_measurement,
        value_template=meta.value_template,
    )
    return DiscoveryConfig(device=build_device(device), entity=entity)
