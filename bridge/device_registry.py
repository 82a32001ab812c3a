# bridge/device_registry.py
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Set

logger = logging.getLogger(__name__)


@dataclass
class DeviceRecord:
    announced: Set[str] = field(default_factory=set)
    key: Optional[str] = None
    first_seen: int = field(default_factory=lambda: int(time.time()))
    last_seen: int = field(default_factory=lambda: int(time.time()))
    # held by the orchestrator while it works through one report of this device
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


class DeviceRegistry:
    """Devices seen by this process and the channels already announced for each.

    One lock guards the device map and every announced set; it is only held
    for dictionary and set operations, never while publishing. With
    ``trust_on_first_use`` the first key presented for a device is bound to it
    for the lifetime of the process and every later report must present the
    same key. There is no way to rotate or revoke a bound key, and whoever
    reports first for a device id owns it. A report without a key is
    rejected in that mode and binds nothing, so an empty key can never become
    the bound key of a device.
    """

    def __init__(self, trust_on_first_use: bool = False):
        self.trust_on_first_use = trust_on_first_use
        self._lock = threading.Lock()
        self._devices: Dict[str, DeviceRecord] = {}

    def ensure(self, identity: str) -> DeviceRecord:
        with self._lock:
            record = self._devices.get(identity)
            if record is None:
                record = DeviceRecord()
                self._devices[identity] = record
                logger.info("New device %s", identity)
            else:
                record.last_seen = int(time.time())
            return record

    def has_announced(self, identity: str, value_type: str) -> bool:
        with self._lock:
            record = self._devices.get(identity)
            return record is not None and value_type in record.announced

    def mark_announced(self, identity: str, value_type: str) -> None:
        with self._lock:
            record = self._devices.get(identity)
            if record is not None:
                record.announced.add(value_type)

    def authorize(self, identity: str, presented_key: Optional[str]) -> bool:
        if not self.trust_on_first_use:
            return True
        if not presented_key:
            logger.warning("Device %s presented no key", identity)
            return False
        with self._lock:
            record = self._devices.get(identity)
            if record is None:
                self._devices[identity] = DeviceRecord(key=presented_key)
                logger.info("Bound key for device %s on first contact", identity)
                return True
            return record.key == presented_key

    def forget(self, identity: str) -> bool:
        """Drop the announced channels of one device; the bound key is kept."""
        with self._lock:
            record = self._devices.get(identity)
            if record is None:
                return False
            record.announced.clear()
        logger.info("Announcements reset for device %s", identity)
        return True

    def clear(self) -> None:
        with self._lock:
            self._devices.clear()

    def snapshot(self) -> dict:
        with self._lock:
            return {
                identity: {
                    "announced": sorted(record.announced),
                    "key_bound": record.key is not None,
                    "first_seen": record.first_seen,
                    "last_seen": record.last_seen,
                }
                for identity, record in self._devices.items()
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._devices)
