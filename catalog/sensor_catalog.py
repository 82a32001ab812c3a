"""Mapping from airrohr value types to Home Assistant sensor metadata."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from catalog.catalog_store import read_json_object


logger = logging.getLogger(__name__)

IDENTITY_TEMPLATE = "{{ value }}"

_PM1 = ("pm1", "µg/m³")
_PM25 = ("pm25", "µg/m³")
_PM10 = ("pm10", "µg/m³")
_TEMPERATURE = ("temperature", "°C")
_HUMIDITY = ("humidity", "%")
_PRESSURE = ("pressure", "Pa")

# value_type -> (device_class, unit)
_BUILTIN: Dict[str, tuple] = {
    # SDS011 / SDS021
    "SDS_P1": _PM10,
    "SDS_P2": _PM25,
    # Plantower PMS x003
    "PMS_P0": _PM1,
    "PMS_P1": _PM10,
    "PMS_P2": _PM25,
    # Honeywell HPM
    "HPM_P1": _PM10,
    "HPM_P2": _PM25,
    # Sensirion SPS30
    "SPS30_P0": _PM1,
    "SPS30_P1": _PM10,
    "SPS30_P2": _PM25,
    # climate sensors
    "temperature": _TEMPERATURE,
    "humidity": _HUMIDITY,
    "BME280_temperature": _TEMPERATURE,
    "BME280_humidity": _HUMIDITY,
    "BME280_pressure": _PRESSURE,
    "BMP280_temperature": _TEMPERATURE,
    "BMP280_pressure": _PRESSURE,
    "BMP_temperature": _TEMPERATURE,
    "BMP_pressure": _PRESSURE,
    "HTU21D_temperature": _TEMPERATURE,
    "HTU21D_humidity": _HUMIDITY,
    "SHT3X_temperature": _TEMPERATURE,
    "SHT3X_humidity": _HUMIDITY,
    # WiFi RSSI
    "signal": ("signal_strength", "dBm"),
}


class CatalogError(ValueError):
    """A sensor definition is missing fields or has the wrong shape."""


@dataclass(frozen=True)
class SensorMeta:
    device_class: str
    unit_of_measurement: str
    value_template: str = IDENTITY_TEMPLATE


class SensorCatalog:
    """Read-only lookup of supported value types.

    Built either from the table shipped with the bridge (:meth:`builtin`) or
    from a definitions file in the format
    ``{"SDS_P2": {"class": "pm25", "unit": "µg/m³", "value_template": "{{ value }}"}}``.
    Instances are never mutated after construction, so concurrent lookups need
    no locking.
    """

    def __init__(self, entries: Mapping[str, SensorMeta]):
        self._entries: Dict[str, SensorMeta] = dict(entries)

    @classmethod
    def builtin(cls) -> "SensorCatalog":
        return cls({vt: SensorMeta(dc, unit) for vt, (dc, unit) in _BUILTIN.items()})

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Mapping[str, str]]) -> "SensorCatalog":
        entries: Dict[str, SensorMeta] = {}
        for value_type, definition in raw.items():
            if not isinstance(definition, Mapping):
                raise CatalogError(f"sensor '{value_type}': definition must be an object")
            missing = [k for k in ("class", "unit", "value_template") if k not in definition]
            if missing:
                raise CatalogError(f"sensor '{value_type}': missing fields: {', '.join(missing)}")
            fields = [definition["class"], definition["unit"], definition["value_template"]]
            if not all(isinstance(f, str) for f in fields):
                raise CatalogError(f"sensor '{value_type}': class, unit and value_template must be strings")
            entries[value_type] = SensorMeta(*fields)
        return cls(entries)

    @classmethod
    def from_file(cls, path: str) -> "SensorCatalog":
        catalog = cls.from_mapping(read_json_object(path))
        logger.info("Loaded %d sensor definitions from %s", len(catalog), path)
        return catalog

    def lookup(self, value_type: str) -> Optional[SensorMeta]:
        return self._entries.get(value_type)

    def __contains__(self, value_type: str) -> bool:
        return value_type in self._entries

    def __len__(self) -> int:
        return len(self._entries)
