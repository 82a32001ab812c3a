"""Interface the bridge uses to hand messages to the message bus."""

from __future__ import annotations

from enum import Enum
from typing import Protocol


class QoS(Enum):
    BEST_EFFORT = 0
    DURABLE = 1


class PublishError(RuntimeError):
    """The transport could not deliver a message to the broker."""

    def __init__(self, topic: str, reason: str):
        super().__init__(f"publish to {topic} failed: {reason}")
        self.topic = topic
        self.reason = reason


class PublishPort(Protocol):
    def publish(self, topic: str, payload: bytes, qos: QoS) -> None:
        """Deliver ``payload`` to ``topic`` or raise :class:`PublishError`.

        Must not return before the transport has accepted or rejected the
        message; failures are never queued for later.
        """
        ...
