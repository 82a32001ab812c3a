"""Central logging configuration for the airrohr bridge.

Routes ingest (HTTP, orchestration, registry) and MQTT transport logs to
separate files while keeping stdout output.
"""

from __future__ import annotations

import logging
import os
from logging.config import dictConfig
from typing import Any, Dict

_CONFIGURED = False


def configure_logging() -> None:
    """Set up log handlers only once."""
    global _CONFIGURED
    if _CONFIGURED:
        return

    log_dir = os.environ.get("LOG_DIR", "/tmp/logs")
    try:
        os.makedirs(log_dir, exist_ok=True)
    except OSError:
        log_dir = "/tmp"
        os.makedirs(log_dir, exist_ok=True)

    def _file(name: str) -> Dict[str, Any]:
        return {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": os.path.join(log_dir, f"{name}.log"),
            "maxBytes": 1_000_000,
            "backupCount": 3,
            "encoding": "utf-8",
            "formatter": "detailed",
        }

    level = os.environ.get("LOG_LEVEL", "INFO")

    def _logger(*handlers: str) -> Dict[str, Any]:
        return {"handlers": list(handlers) + ["console"], "level": level, "propagate": False}

    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "simple": {
                "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
            },
            "detailed": {
                "format": "%(asctime)s %(levelname)s %(name)s [%(filename)s:%(lineno)d]: %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "simple",
                "level": level,
            },
            "ingest_file": _file("ingest"),
            "mqtt_file": _file("mqtt"),
        },
        "root": {
            "handlers": ["console"],
            "level": os.environ.get("LOG_LEVEL_ROOT", "WARNING"),
        },
        "loggers": {
            "ingest_api.bridge_api": _logger("ingest_file"),
            "bridge.orchestrator": _logger("ingest_file"),
            "bridge.device_registry": _logger("ingest_file"),
            "catalog.sensor_catalog": _logger("ingest_file"),
            "Device_connectors.mqtt_client": _logger("mqtt_file"),
            "paho": {"handlers": ["mqtt_file"], "level": "WARNING", "propagate": False},
        },
    }

    dictConfig(config)
    _CONFIGURED = True
