"""Shared fixtures for the airrohr bridge tests."""

from typing import List, Optional, Tuple

import pytest

from bridge.device_registry import DeviceRegistry
from bridge.orchestrator import Bridge
from bridge.publish_port import PublishError, QoS
from catalog.sensor_catalog import SensorCatalog


class RecordingPublisher:
    """In-memory publish port; ``fail_on`` makes the n-th publish (1-based) fail."""

    def __init__(self, fail_on: Optional[int] = None):
        self.messages: List[Tuple[str, bytes, QoS]] = []
        self.fail_on = fail_on
        self.calls = 0

    def publish(self, topic, payload, qos):
        self.calls += 1
        if self.fail_on is not None and self.calls == self.fail_on:
            raise PublishError(topic, "broker unavailable")
        self.messages.append((topic, payload, qos))

    def topics(self, qos=None):
        return [t for t, _, q in self.messages if qos is None or q is qos]


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def catalog():
    return SensorCatalog.builtin()


@pytest.fixture
def bridge(publisher, catalog):
    return Bridge(publisher, catalog, DeviceRegistry())


@pytest.fixture
def report():
    return {
        "esp8266id": "abc123",
        "software_version": "1.0",
        "sensordatavalues": [
            {"value_type": "SDS_P2", "value": "7.5"},
            {"value_type": "signal", "value": "-70"},
        ],
    }
