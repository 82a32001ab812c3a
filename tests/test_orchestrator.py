"""Tests for the announce-then-publish flow of the bridge."""
import json
import threading

from bridge.device_registry import DeviceRegistry
from bridge.measurement import Measurement
from bridge.orchestrator import Bridge, Outcome
from bridge.publish_port import QoS
from catalog.sensor_catalog import SensorCatalog

from conftest import RecordingPublisher


def _measurement(channels, device_id="abc123"):
    return Measurement.from_payload({
        "esp8266id": device_id,
        "software_version": "1.0",
        "sensordatavalues": [{"value_type": vt, "value": v} for vt, v in channels],
    })


def test_first_report_announces_then_publishes_state(bridge, publisher, report):
    outcome = bridge.handle(Measurement.from_payload(report))

    assert outcome is Outcome.ACCEPTED
    assert publisher.messages == [
        ("homeassistant/sensor/airrohr-abc123/SDS_P2/config", publisher.messages[0][1], QoS.DURABLE),
        ("airrohr/airrohr-abc123/SDS_P2", b"7.5", QoS.BEST_EFFORT),
        ("homeassistant/sensor/airrohr-abc123/signal/config", publisher.messages[2][1], QoS.DURABLE),
        ("airrohr/airrohr-abc123/signal", b"-70", QoS.BEST_EFFORT),
    ]
    config = json.loads(publisher.messages[0][1].decode("utf-8"))
    assert config["state_topic"] == "airrohr/airrohr-abc123/SDS_P2"
    assert config["device_class"] == "pm25"
    assert config["device"]["sw_version"] == "1.0"


def test_replay_publishes_state_only(bridge, publisher, report):
    bridge.handle(Measurement.from_payload(report))
    publisher.messages.clear()

    assert bridge.handle(Measurement.from_payload(report)) is Outcome.ACCEPTED
    assert publisher.topics(QoS.DURABLE) == []
    assert publisher.topics(QoS.BEST_EFFORT) == [
        "airrohr/airrohr-abc123/SDS_P2",
        "airrohr/airrohr-abc123/signal",
    ]


def test_discovery_published_at_most_once_per_channel(bridge, publisher):
    for value in ("1", "2", "3"):
        bridge.handle(_measurement([("SDS_P1", value), ("SDS_P1", value)]))

    assert publisher.topics(QoS.DURABLE) == ["homeassistant/sensor/airrohr-abc123/SDS_P1/config"]
    assert len(publisher.topics(QoS.BEST_EFFORT)) == 6


def test_new_channel_on_known_device_is_announced(bridge, publisher):
    bridge.handle(_measurement([("SDS_P1", "4")]))
    bridge.handle(_measurement([("SDS_P1", "5"), ("BME280_temperature", "21.3")]))

    assert publisher.topics(QoS.DURABLE) == [
        "homeassistant/sensor/airrohr-abc123/SDS_P1/config",
        "homeassistant/sensor/airrohr-abc123/BME280_temperature/config",
    ]


def test_devices_are_tracked_separately(bridge, publisher):
    bridge.handle(_measurement([("SDS_P1", "4")], device_id="1"))
    bridge.handle(_measurement([("SDS_P1", "4")], device_id="2"))

    assert publisher.topics(QoS.DURABLE) == [
        "homeassistant/sensor/airrohr-1/SDS_P1/config",
        "homeassistant/sensor/airrohr-2/SDS_P1/config",
    ]


def test_unsupported_channels_are_skipped(bridge, publisher):
    outcome = bridge.handle(_measurement([("samples", "812345"), ("min_micro", "30")]))

    assert outcome is Outcome.ACCEPTED
    assert publisher.messages == []


def test_unsupported_channel_does_not_stop_later_channels(bridge, publisher):
    bridge.handle(_measurement([("interval", "145000"), ("SDS_P2", "3.1")]))

    assert publisher.topics(QoS.BEST_EFFORT) == ["airrohr/airrohr-abc123/SDS_P2"]


def test_failed_discovery_is_not_marked_announced(catalog):
    publisher = RecordingPublisher(fail_on=1)
    registry = DeviceRegistry()
    bridge = Bridge(publisher, catalog, registry)

    outcome = bridge.handle(_measurement([("SDS_P2", "7.5"), ("signal", "-70")]))

    assert outcome is Outcome.INTERNAL_FAILURE
    assert publisher.messages == []
    assert not registry.has_announced("airrohr-abc123", "SDS_P2")

    # the retry announces again
    assert bridge.handle(_measurement([("SDS_P2", "7.5")])) is Outcome.ACCEPTED
    assert publisher.topics(QoS.DURABLE) == ["homeassistant/sensor/airrohr-abc123/SDS_P2/config"]


def test_failure_on_second_channel_keeps_partial_progress(catalog):
    # publishes: 1 config A, 2 state A, 3 config B (fails)
    publisher = RecordingPublisher(fail_on=3)
    registry = DeviceRegistry()
    bridge = Bridge(publisher, catalog, registry)

    outcome = bridge.handle(_measurement([("SDS_P1", "1"), ("SDS_P2", "2"), ("signal", "-60")]))

    assert outcome is Outcome.INTERNAL_FAILURE
    assert registry.has_announced("airrohr-abc123", "SDS_P1")
    assert not registry.has_announced("airrohr-abc123", "SDS_P2")
    assert not registry.has_announced("airrohr-abc123", "signal")
    assert publisher.topics() == [
        "homeassistant/sensor/airrohr-abc123/SDS_P1/config",
        "airrohr/airrohr-abc123/SDS_P1",
    ]


def test_failed_state_publish_after_announcement(catalog):
    publisher = RecordingPublisher(fail_on=2)
    registry = DeviceRegistry()
    bridge = Bridge(publisher, catalog, registry)

    assert bridge.handle(_measurement([("SDS_P1", "1")])) is Outcome.INTERNAL_FAILURE
    assert registry.has_announced("airrohr-abc123", "SDS_P1")


def test_custom_namespace_and_prefix(publisher, catalog):
    bridge = Bridge(publisher, catalog, DeviceRegistry(), namespace="feinstaub", discovery_prefix="ha")

    bridge.handle(_measurement([("SDS_P1", "1")]))

    assert publisher.topics() == [
        "ha/sensor/airrohr-abc123/SDS_P1/config",
        "feinstaub/airrohr-abc123/SDS_P1",
    ]


def test_key_bound_on_first_report(publisher, catalog):
    bridge = Bridge(publisher, catalog, DeviceRegistry(trust_on_first_use=True))

    assert bridge.handle(_measurement([("SDS_P1", "1")]), "k1") is Outcome.ACCEPTED
    publisher.messages.clear()

    assert bridge.handle(_measurement([("SDS_P1", "1")]), "k2") is Outcome.UNAUTHORIZED
    assert publisher.messages == []
    assert bridge.handle(_measurement([("SDS_P1", "1")]), "k1") is Outcome.ACCEPTED


def test_keys_ignored_without_trust_on_first_use(bridge):
    assert bridge.handle(_measurement([("SDS_P1", "1")]), "k1") is Outcome.ACCEPTED
    assert bridge.handle(_measurement([("SDS_P1", "1")]), "other") is Outcome.ACCEPTED
    assert bridge.handle(_measurement([("SDS_P1", "1")])) is Outcome.ACCEPTED


def test_concurrent_reports_announce_once():
    publisher = RecordingPublisher()
    bridge = Bridge(publisher, SensorCatalog.builtin(), DeviceRegistry())
    measurement = _measurement([("SDS_P1", "1"), ("SDS_P2", "2")])
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        for _ in range(20):
            assert bridge.handle(measurement) is Outcome.ACCEPTED

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(publisher.topics(QoS.DURABLE)) == [
        "homeassistant/sensor/airrohr-abc123/SDS_P1/config",
        "homeassistant/sensor/airrohr-abc123/SDS_P2/config",
    ]
    assert len(publisher.topics(QoS.BEST_EFFORT)) == 8 * 20 * 2
