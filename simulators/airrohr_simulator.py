"""Local device simulator that posts airrohr-style reports to the bridge."""

from __future__ import annotations

import logging
import os
import random
import threading
from typing import Dict, List, Optional

import requests


logger = logging.getLogger("AirrohrSimulator")

SOFTWARE_VERSION = "NRZ-2020-133"


class AirrohrSimulator:
    def __init__(self, bridge_url: str, device_ids: List[str], loop_sec: int = 145, device_key: Optional[str] = None):
        self.bridge_url = bridge_url.rstrip("/")
        self.device_ids = list(device_ids)
        self.loop_sec = loop_sec
        self.device_key = device_key
        self._session = requests.Session()
        self._levels: Dict[str, Dict[str, float]] = {
            dev: {"pm10": random.uniform(8.0, 20.0), "pm25": random.uniform(4.0, 12.0), "temp": random.uniform(12.0, 22.0)}
            for dev in self.device_ids
        }
        self._stop = threading.Event()

    @property
    def endpoint(self) -> str:
        if self.device_key:
            return f"{self.bridge_url}/api/{self.device_key}"
        return f"{self.bridge_url}/api"

    # ------------------------------------------------------------------ reports
    def build_report(self, device_id: str) -> dict:
        lvl = self._levels[device_id]
        lvl["pm10"] = max(0.5, lvl["pm10"] + random.uniform(-1.5, 1.5))
        lvl["pm25"] = max(0.2, min(lvl["pm10"], lvl["pm25"] + random.uniform(-1.0, 1.0)))
        lvl["temp"] += random.uniform(-0.3, 0.3)
        values = [
            ("SDS_P1", f"{lvl['pm10']:.2f}"),
            ("SDS_P2", f"{lvl['pm25']:.2f}"),
            ("BME280_temperature", f"{lvl['temp']:.2f}"),
            ("BME280_humidity", f"{random.uniform(40.0, 70.0):.2f}"),
            ("BME280_pressure", f"{random.uniform(98000.0, 103000.0):.2f}"),
            ("samples", str(random.randint(700000, 900000))),
            ("signal", str(random.randint(-85, -45))),
        ]
        return {
            "esp8266id": device_id,
            "software_version": SOFTWARE_VERSION,
            "sensordatavalues": [{"value_type": vt, "value": v} for vt, v in values],
        }

    def post_once(self) -> Dict[str, int]:
        """Post one report per device and return the HTTP status per device id."""
        results: Dict[str, int] = {}
        for device_id in self.device_ids:
            report = self.build_report(device_id)
            try:
                resp = self._session.post(self.endpoint, json=report, timeout=10)
            except requests.RequestException as exc:
                logger.error("Posting report for %s failed: %s", device_id, exc)
                continue
            results[device_id] = resp.status_code
            if resp.ok:
                logger.info("Posted report device=%s status=%s", device_id, resp.status_code)
            else:
                logger.warning("Bridge rejected report device=%s status=%s body=%s", device_id, resp.status_code, resp.text)
        return results

    # ------------------------------------------------------------------ loop
    def run_forever(self):
        while not self._stop.is_set():
            self.post_once()
            sleep_for = max(1.0, self.loop_sec + random.uniform(-1.0, 1.0))
            if self._stop.wait(sleep_for):
                break

    def stop(self):
        self._stop.set()
        self._session.close()


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    bridge_url = os.getenv("BRIDGE_URL", "http://localhost:8080")
    count = int(os.getenv("SIM_DEVICES", "2"))
    loop_sec = int(os.getenv("SIM_LOOP_SEC", "10"))
    device_key = os.getenv("SIM_DEVICE_KEY") or None
    device_ids = [str(1000000 + idx) for idx in range(count)]
    simulator = AirrohrSimulator(bridge_url, device_ids, loop_sec=loop_sec, device_key=device_key)
    logger.info("Simulating %d devices against %s every ~%ss", count, bridge_url, loop_sec)
    try:
        simulator.run_forever()
    except KeyboardInterrupt:
        simulator.stop()


if __name__ == "__main__":
    main()
