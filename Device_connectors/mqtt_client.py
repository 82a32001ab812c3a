"""Thin wrapper around paho-mqtt that publishes synchronously for the bridge."""

from __future__ import annotations

import logging
import threading
from typing import Optional

import paho.mqtt.client as mqtt

from bridge.publish_port import PublishError, QoS


logger = logging.getLogger(__name__)


class MqttClient:
    """MQTT publisher with auto-reconnect that reports every failed publish.

    ``publish`` blocks until paho has handed the message to the broker (QoS 0)
    or the broker acknowledged it (QoS 1), up to ``publish_timeout`` seconds.
    """

    def __init__(
        self,
        client_id: str,
        host: str = "localhost",
        port: int = 1883,
        keepalive: int = 20,
        username: Optional[str] = None,
        password: Optional[str] = None,
        publish_timeout: float = 5.0,
    ):
        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id, clean_session=True)
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.enable_logger(logging.getLogger("paho"))
        if username:
            self.client.username_pw_set(username, password or None)
        self.host, self.port, self.keepalive = host, port, keepalive
        self.publish_timeout = publish_timeout
        self._connected = threading.Event()

    # --------------------------------------------------------------------- #
    # MQTT event handlers
    # --------------------------------------------------------------------- #
    def _on_connect(self, _client, _userdata, _flags, reason_code, _properties=None):
        if getattr(reason_code, "is_failure", False):
            logger.error("MQTT broker %s:%s refused connection: %s", self.host, self.port, reason_code)
            return
        self._connected.set()
        logger.info("Connected to MQTT broker at %s:%s", self.host, self.port)

    def _on_disconnect(self, _client, _userdata, _flags, reason_code, _properties=None):
        self._connected.clear()
        # paho's network loop reconnects on its own (see reconnect_delay_set)
        logger.warning("Disconnected from MQTT broker at %s:%s: %s", self.host, self.port, reason_code)

    # ------------------------------------------------------------------ API
    @property
    def is_connected(self) -> bool:
        return self._connected.is_set()

    def connect(self, wait: float = 0.0) -> bool:
        """Start the network loop and connect; optionally wait for the CONNACK."""
        self.client.reconnect_delay_set(min_delay=2, max_delay=30)
        self.client.loop_start()
        try:
            # connect_async avoids raising when broker is temporarily unavailable
            self.client.connect_async(self.host, self.port, self.keepalive)
        except (OSError, ValueError) as exc:
            logger.warning("Initial MQTT connection failed: %s", exc)
        else:
            logger.info("Connecting to MQTT broker at %s:%s", self.host, self.port)
        if wait:
            return self._connected.wait(wait)
        return self.is_connected

    def publish(self, topic: str, payload: bytes, qos: QoS) -> None:
        retain = qos is QoS.DURABLE
        try:
            info = self.client.publish(topic, payload, qos=qos.value, retain=retain)
        except ValueError as exc:
            raise PublishError(topic, str(exc)) from exc
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishError(topic, mqtt.error_string(info.rc))
        try:
            info.wait_for_publish(timeout=self.publish_timeout)
        except (RuntimeError, ValueError) as exc:
            raise PublishError(topic, str(exc)) from exc
        if not info.is_published():
            raise PublishError(topic, f"not acknowledged within {self.publish_timeout}s")
        logger.debug("Published to %s qos=%s retain=%s bytes=%d", topic, qos.value, retain, len(payload))

    def disconnect(self):
        self.client.disconnect()
        self.client.loop_stop()
