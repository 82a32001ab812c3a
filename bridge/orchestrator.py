"""Turns one airrohr report into discovery and state messages."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from bridge import discovery
from bridge.device_registry import DeviceRegistry
from bridge.measurement import AirrohrDevice, Channel, Measurement
from bridge.publish_port import PublishError, PublishPort, QoS
from catalog.sensor_catalog import SensorCatalog, SensorMeta


logger = logging.getLogger(__name__)


class Outcome(Enum):
    ACCEPTED = "accepted"
    UNAUTHORIZED = "unauthorized"
    BAD_INPUT = "bad_input"
    INTERNAL_FAILURE = "internal_failure"


class Bridge:
    """Announces each (device, channel) pair once, then forwards its readings.

    Reports from the same device are handled one at a time (per-device lock);
    reports from different devices only contend on the registry lock, which
    is never held across a publish.
    """

    def __init__(
        self,
        publisher: PublishPort,
        catalog: SensorCatalog,
        registry: Optional[DeviceRegistry] = None,
        namespace: str = discovery.STATE_NAMESPACE,
        discovery_prefix: str = discovery.DISCOVERY_PREFIX,
    ):
        self.publisher = publisher
        self.catalog = catalog
        self.registry = registry if registry is not None else DeviceRegistry()
        self.namespace = namespace
        self.discovery_prefix = discovery_prefix

    def handle(self, measurement: Measurement, presented_key: Optional[str] = None) -> Outcome:
        device = measurement.device
        name = device.name
        if not self.registry.authorize(name, presented_key):
            logger.warning("Rejected report from %s: key mismatch", name)
            return Outcome.UNAUTHORIZED

        record = self.registry.ensure(name)
        with record.lock:
            for channel in measurement.channels:
                meta = self.catalog.lookup(channel.value_type)
                if meta is None:
                    logger.debug("Skipping unsupported value type %s from %s", channel.value_type, name)
                    continue
                try:
                    if not self.registry.has_announced(name, channel.value_type):
                        self._advertise(device, channel, meta)
                        self.registry.mark_announced(name, channel.value_type)
                    self._send_state(device, channel)
                except PublishError as exc:
                    logger.error("Aborting report from %s: %s", name, exc)
                    return Outcome.INTERNAL_FAILURE
        return Outcome.ACCEPTED

    def _advertise(self, device: AirrohrDevice, channel: Channel, meta: SensorMeta) -> None:
        config = discovery.build(device, channel.value_type, meta, self.namespace)
        topic = discovery.discovery_topic(self.discovery_prefix, device.name, channel.value_type)
        self.publisher.publish(topic, config.to_payload(), QoS.DURABLE)
        logger.info("Announced %s on %s", config.entity.unique_id, topic)

    def _send_state(self, device: AirrohrDevice, channel: Channel) -> None:
        topic = discovery.state_topic(self.namespace, device.name, channel.value_type)
        self.publisher.publish(topic, channel.value.encode("utf-8"), QoS.BEST_EFFORT)
        logger.debug("State %s=%s", topic, channel.value)
