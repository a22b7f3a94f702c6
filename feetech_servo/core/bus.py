"""
In-process message bus shared by the controller, actuators and safety.

Subscribers are callbacks run on the publisher's thread. Actors only use
them to hand the message over to their own mailbox. Topic names are plain
strings; parameterised topics are format strings on Topics.
"""

import logging
import threading
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Callback = Callable[[Any], None]


class MessageBus:
    """Thread-safe publish/subscribe message bus."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: Dict[str, List[Callback]] = {}

    def publish(self, topic: str, message: Any) -> None:
        """
        Publish a message to a topic.

        Args:
            topic: Topic name (e.g. "/sensor/feetech/servo_status")
            message: Message dataclass from core.messages
        """
        with self._lock:
            callbacks = list(self._subscribers.get(topic, ()))

        # Notify outside lock; callbacks may publish in turn
        for callback in callbacks:
            try:
                callback(message)
            except Exception:
                logger.exception("Callback error on %s", topic)

    def subscribe_callback(self, topic: str, callback: Callback) -> None:
        """Subscribe to a topic. The callback runs synchronously inside publish()."""
        with self._lock:
            self._subscribers.setdefault(topic, []).append(callback)

    def unsubscribe_callback(self, topic: str, callback: Callback) -> None:
        """Remove a callback subscription."""
        with self._lock:
            if topic in self._subscribers:
                self._subscribers[topic] = [c for c in self._subscribers[topic] if c != callback]


class Topics:
    """Standard topic names."""
    # Safety
    STATE_MACHINE: str = "/state_machine"
    SAFETY_ERROR: str = "/safety/error"

    # Health
    DIAGNOSTICS: str = "/diagnostics"

    # Per controller / per actuator
    SENSOR: str = "/sensor/{controller}/{sensor}"
    ACTUATOR: str = "/actuator/{joint}/{actuator}"

    SERVO_STATUS_SENSOR: str = "servo_status"

    @classmethod
    def joint_state(cls, controller: str, joint: str) -> str:
        return cls.SENSOR.format(controller=controller, sensor=joint)

    @classmethod
    def servo_status(cls, controller: str) -> str:
        return cls.SENSOR.format(controller=controller, sensor=cls.SERVO_STATUS_SENSOR)

    @classmethod
    def actuator(cls, joint: str, actuator: str) -> str:
        return cls.ACTUATOR.format(joint=joint, actuator=actuator)
