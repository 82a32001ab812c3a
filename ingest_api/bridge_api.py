"""CherryPy service receiving airrohr reports and forwarding them over MQTT."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Tuple

import cherrypy

from bridge.device_registry import DeviceRegistry
from bridge.measurement import Measurement
from bridge.orchestrator import Bridge, Outcome
from catalog.sensor_catalog import SensorCatalog
from Device_connectors.mqtt_client import MqttClient
from logging_setup import configure_logging
from settings import Settings


logger = logging.getLogger(__name__)

STATUS_CODES = {
    Outcome.ACCEPTED: 200,
    Outcome.BAD_INPUT: 400,
    Outcome.UNAUTHORIZED: 401,
    Outcome.INTERNAL_FAILURE: 500,
}


def _ts() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def _response(outcome: Outcome, detail: str = "") -> Tuple[int, dict]:
    if outcome is Outcome.ACCEPTED:
        return STATUS_CODES[outcome], {"ok": True}
    return STATUS_CODES[outcome], {"error": detail or outcome.value}


class BridgeAPI:
    exposed = True

    def __init__(self, bridge: Bridge, mqtt_client: Optional[MqttClient] = None):
        self.bridge = bridge
        self.mqtt_client = mqtt_client

    # ------------------------------------------------------------------ helpers
    def ingest(self, body, device_key: Optional[str] = None) -> Tuple[int, dict]:
        """Run one decoded report through the bridge and return (status, body)."""
        try:
            measurement = Measurement.from_payload(body)
        except ValueError as exc:
            logger.warning("Rejected malformed report: %s", exc)
            return _response(Outcome.BAD_INPUT, str(exc))
        outcome = self.bridge.handle(measurement, device_key)
        if outcome is Outcome.UNAUTHORIZED:
            return _response(outcome, "invalid device key")
        if outcome is Outcome.INTERNAL_FAILURE:
            return _response(outcome, "publishing to MQTT failed")
        logger.debug("Report from %s accepted channels=%d", measurement.device.name, len(measurement.channels))
        return _response(outcome)

    def health(self) -> dict:
        info = {"ok": True, "ts": _ts(), "devices": len(self.bridge.registry)}
        if self.mqtt_client is not None:
            info["mqtt_connected"] = self.mqtt_client.is_connected
        return info

    def forget(self, device_name: str) -> Tuple[int, dict]:
        if not self.bridge.registry.forget(device_name):
            return 404, {"error": f"device '{device_name}' not found"}
        return 200, {"ok": True, "msg": "announcements reset"}

    # ------------------------------------------------------------------ handlers
    @cherrypy.tools.json_out()
    def GET(self, *uri, **_params):
        if not uri:
            return {"ok": True, "endpoints": ["/health", "/status", "POST /api[/{device_key}]", "DELETE /device/{name}"]}
        path = uri[0].lower()
        if path == "health":
            return self.health()
        if path == "status":
            return {"devices": self.bridge.registry.snapshot(), "ts": _ts()}
        cherrypy.response.status = 404
        return {"error": "invalid endpoint"}

    @cherrypy.tools.json_in()
    @cherrypy.tools.json_out()
    def POST(self, *uri, **_params):
        if not uri or uri[0].lower() != "api" or len(uri) > 2:
            cherrypy.response.status = 404
            return {"error": "use /api or /api/{device_key}"}
        device_key = uri[1] if len(uri) == 2 else None
        status, body = self.ingest(cherrypy.request.json, device_key)
        cherrypy.response.status = status
        return body

    @cherrypy.tools.json_out()
    def DELETE(self, *uri, **_params):
        if len(uri) != 2 or uri[0].lower() != "device":
            cherrypy.response.status = 404
            return {"error": "use /device/{name}"}
        status, body = self.forget(uri[1])
        cherrypy.response.status = status
        return body


def build_bridge(settings: Settings, publisher) -> Bridge:
    if settings.sensors_path:
        catalog = SensorCatalog.from_file(settings.sensors_path)
    else:
        catalog = SensorCatalog.builtin()
        logger.info("Using built-in sensor catalog (%d value types)", len(catalog))
    registry = DeviceRegistry(trust_on_first_use=settings.require_device_key)
    return Bridge(
        publisher,
        catalog,
        registry,
        namespace=settings.state_namespace,
        discovery_prefix=settings.discovery_prefix,
    )


def run():
    configure_logging()
    settings = Settings.from_env()
    mqtt_client = MqttClient(
        client_id="airrohr_bridge",
        host=settings.mqtt_host,
        port=settings.mqtt_port,
        keepalive=settings.mqtt_keepalive,
        username=settings.mqtt_user or None,
        password=settings.mqtt_password or None,
        publish_timeout=settings.publish_timeout,
    )
    bridge = build_bridge(settings, mqtt_client)
    mqtt_client.connect()
    if settings.require_device_key:
        logger.warning("Device keys enabled: the first key seen for each device is trusted")

    cherrypy.config.update({"server.socket_host": settings.http_host, "server.socket_port": settings.http_port})
    conf = {"/": {"request.dispatch": cherrypy.dispatch.MethodDispatcher()}}
    cherrypy.tree.mount(BridgeAPI(bridge, mqtt_client), "/", conf)
    cherrypy.engine.subscribe("stop", mqtt_client.disconnect)
    cherrypy.engine.start()
    cherrypy.engine.block()


if __name__ == "__main__":
    run()
