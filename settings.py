"""Runtime configuration from environment variables and an optional settings file."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional
from urllib.parse import urlsplit

from catalog.catalog_store import read_json_object


def _int_env(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name, "")
    if raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _flag(raw: str) -> bool:
    return raw.lower() not in ("", "0", "false", "no")


@dataclass(frozen=True)
class Settings:
    mqtt_host: str = "localhost"
    mqtt_port: int = 1883
    mqtt_user: str = ""
    mqtt_password: str = ""
    mqtt_keepalive: int = 20
    publish_timeout: int = 5
    sensors_path: str = ""
    state_namespace: str = "airrohr"
    discovery_prefix: str = "homeassistant"
    require_device_key: bool = False
    http_host: str = "0.0.0.0"
    http_port: int = 8080

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        settings = cls(
            mqtt_host=env.get("MQTT_HOST", "localhost"),
            mqtt_port=_int_env(env, "MQTT_PORT", 1883),
            mqtt_user=env.get("MQTT_USER", ""),
            mqtt_password=env.get("MQTT_PASSWORD", ""),
            mqtt_keepalive=_int_env(env, "MQTT_KEEPALIVE", 20),
            publish_timeout=_int_env(env, "MQTT_PUBLISH_TIMEOUT", 5),
            sensors_path=env.get("SENSORS_PATH", ""),
            state_namespace=env.get("STATE_NAMESPACE", "airrohr").strip("/"),
            discovery_prefix=env.get("DISCOVERY_PREFIX", "homeassistant").strip("/"),
            require_device_key=_flag(env.get("REQUIRE_DEVICE_KEY", "0")),
            http_host=env.get("HTTP_HOST", "0.0.0.0"),
            http_port=_int_env(env, "HTTP_PORT", 8080),
        )
        settings_path = env.get("BRIDGE_SETTINGS_PATH", "")
        if settings_path:
            settings = settings.with_file(settings_path)
        return settings

    def with_file(self, path: str) -> "Settings":
        """Overlay a JSON settings file using the keys server, user, password and sensors."""
        data = read_json_object(path)
        changes = {}
        if data.get("server"):
            # e.g. tcp://broker.local:1883
            url = urlsplit(data["server"] if "://" in data["server"] else f"tcp://{data['server']}")
            if url.hostname:
                changes["mqtt_host"] = url.hostname
            if url.port:
                changes["mqtt_port"] = url.port
        if "user" in data:
            changes["mqtt_user"] = data["user"]
        if "password" in data:
            changes["mqtt_password"] = data["password"]
        if "sensors" in data:
            base = os.path.dirname(os.path.abspath(path))
            changes["sensors_path"] = os.path.join(base, data["sensors"])
        return replace(self, **changes)
