import math
import time
from typing import Any, Dict, List, Set, Tuple

import pytest

from feetech_servo.core.bus import MessageBus
from feetech_servo.core.config import ActuatorConfig, ControllerConfig, JointConfig, RobotConfig
from feetech_servo.core.errors import CommunicationError
from feetech_servo.core.safety import SafetyController
from feetech_servo.robot.bus_driver import BusDriver
from feetech_servo.robot.model import RobotModel


class FakeDriver(BusDriver):
    """In-memory bus driver that records every call."""

    def __init__(self):
        self.calls: List[Tuple] = []
        self.alive = False
        self.start_error: Any = None
        self.failing: Set[Tuple[str, str]] = set()  # (method, param)
        # param -> servo_id -> value, in converted units
        self.values: Dict[str, Dict[int, Any]] = {}

    def fail(self, method: str, param: str = "*") -> None:
        self.failing.add((method, param))

    def _maybe_fail(self, method: str, param: str) -> None:
        if (method, param) in self.failing or (method, "*") in self.failing:
            raise CommunicationError(method, "no response")

    def calls_to(self, method: str) -> List[Tuple]:
        return [c for c in self.calls if c[0] == method]

    def start(self, port, baud_rate, control_table):
        self.calls.append(("start", port, baud_rate, control_table))
        if self.start_error is not None:
            raise self.start_error
        self.alive = True

    def stop(self):
        self.calls.append(("stop",))
        self.alive = False

    @property
    def is_alive(self):
        return self.alive

    def read(self, servo_id, param):
        self.calls.append(("read", servo_id, param))
        self._maybe_fail("read", param)
        return self.values.get(param, {}).get(servo_id, 0)

    def read_raw(self, servo_id, param):
        self.calls.append(("read_raw", servo_id, param))
        self._maybe_fail("read_raw", param)
        return self.values.get(param, {}).get(servo_id, 0)

    def write(self, servo_id, param, value, wait_for_ack=True):
        self.calls.append(("write", servo_id, param, value, wait_for_ack))
        self._maybe_fail("write", param)

    def write_raw(self, servo_id, param, value, wait_for_ack=True):
        self.calls.append(("write_raw", servo_id, param, value, wait_for_ack))
        self._maybe_fail("write_raw", param)

    def bulk_read(self, servo_ids, param):
        self.calls.append(("bulk_read", tuple(servo_ids), param))
        self._maybe_fail("bulk_read", param)
        table = self.values.get(param, {})
        return [table.get(sid) for sid in servo_ids]

    def bulk_write(self, param, values):
        self.calls.append(("bulk_write", param, tuple(values)))
        self._maybe_fail("bulk_write", param)

    def bulk_write_raw(self, param, values):
        self.calls.append(("bulk_write_raw", param, tuple(values)))
        self._maybe_fail("bulk_write_raw", param)

    def staged_write(self, servo_id, param, value):
        self.calls.append(("staged_write", servo_id, param, value))
        self._maybe_fail("staged_write", param)

    def commit_staged(self):
        self.calls.append(("commit_staged",))
        self._maybe_fail("commit_staged", "*")

    def ping(self, servo_id):
        self.calls.append(("ping", servo_id))
        return {"servo_id": servo_id, "model_number": 777, "error": 0}


def wait_until(predicate, timeout=2.0, interval=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def bus():
    return MessageBus()


@pytest.fixture
def safety(bus):
    return SafetyController(bus, "arm")


@pytest.fixture
def driver():
    return FakeDriver()


@pytest.fixture
def controller_config():
    return ControllerConfig(name="feetech", port="/dev/null", poll_interval_ms=20, status_poll_interval_ms=50)


@pytest.fixture
def robot_config():
    return RobotConfig(
        name="arm",
        joints=[
            JointConfig("shoulder", "revolute", -math.pi / 2, math.pi / 2, math.pi / 3),
            JointConfig("elbow", "revolute", -2.0, 2.0, 2.0),
            JointConfig("wheel", "continuous"),
            JointConfig("loose", "revolute"),
        ],
    )


@pytest.fixture
def model(robot_config):
    return RobotModel.from_config(robot_config)


@pytest.fixture
def shoulder_config():
    return ActuatorConfig(joint="shoulder", servo_id=1)


@pytest.fixture
def collect(bus):
    """Subscribe to a topic and return the list messages land in."""
    def _collect(topic):
        received = []
        bus.subscribe_callback(topic, received.append)
        return received
    return _collect
