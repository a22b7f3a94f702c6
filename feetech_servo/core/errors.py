"""
Exception hierarchy for the servo bus runtime.

Configuration errors stop an actor from starting. Communication errors are
recovered locally by the polling loops. Hardware alerts are decoded from the
servo's hardware error register and handed to the safety controller.
"""

from enum import Enum
from typing import Any, Tuple


class FeetechError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(FeetechError):
    """Invalid configuration file or option."""


class JointConfigError(ConfigurationError):
    """The joint an actuator drives cannot be used as a bounded servo joint."""

    def __init__(self, joint_name: str, reason: str):
        super().__init__(f"Joint {joint_name!r}: {reason}")
        self.joint_name = joint_name
        self.reason = reason


class DriverStartError(FeetechError):
    """The bus driver could not be started."""

    def __init__(self, reason: Any):
        super().__init__(f"Bus driver failed to start: {reason}")
        self.reason = reason


class CommunicationError(FeetechError):
    """A single or batched bus transaction failed."""

    def __init__(self, operation: str, reason: Any, servo_id: Any = None):
        target = f" (servo {servo_id})" if servo_id is not None else ""
        super().__init__(f"{operation}{target} failed: {reason}")
        self.operation = operation
        self.reason = reason
        self.servo_id = servo_id


class NotArmedError(FeetechError):
    """A command was sent through the acknowledged path while disarmed."""


# ============ Hardware alerts ============

class Alert(Enum):
    """Alert tags decoded from the hardware error status register."""
    VOLTAGE_ERROR = "voltage_error"
    SENSOR_ERROR = "sensor_error"
    TEMPERATURE_ERROR = "temperature_error"
    CURRENT_ERROR = "current_error"
    OVERLOAD_ERROR = "overload_error"


# Bit 4 reports torque state, not an error
ALERT_BITS: Tuple[Tuple[int, Alert], ...] = (
    (0, Alert.VOLTAGE_ERROR),
    (1, Alert.SENSOR_ERROR),
    (2, Alert.TEMPERATURE_ERROR),
    (3, Alert.CURRENT_ERROR),
    (5, Alert.OVERLOAD_ERROR),
)


class HardwareAlert(FeetechError):
    """Servo reported hardware error flags. Always critical."""

    severity = "critical"

    def __init__(self, servo_id: int, alerts: Tuple[Alert, ...], raw_value: int):
        names = ", ".join(alert.value for alert in alerts)
        super().__init__(f"Servo {servo_id} hardware alert: {names}")
        self.servo_id = servo_id
        self.alerts = tuple(alerts)
        self.raw_value = raw_value

    @classmethod
    def from_bits(cls, servo_id: int, bits: int) -> "HardwareAlert":
        """Decode a raw hardware error value. The torque bit is ignored."""
        if bits <= 0:
            raise ValueError(f"hardware error bits must be positive, got {bits}")
        alerts = tuple(alert for bit, alert in ALERT_BITS if bits & (1 << bit))
        return cls(servo_id, alerts, bits)


# ============ Parameter bridge ============

class BridgeError(FeetechError):
    """Base class for parameter bridge errors."""


class InvalidParamId(BridgeError):
    def __init__(self, param_id: str):
        super().__init__(f"Invalid parameter id {param_id!r}, expected '<servo_id>:<param>'")
        self.param_id = param_id


class UnknownParam(BridgeError):
    def __init__(self, param_name: str):
        super().__init__(f"Unknown parameter {param_name!r}")
        self.param_name = param_name


class ReadOnlyParam(BridgeError):
    def __init__(self, param_name: str):
        super().__init__(f"Parameter {param_name!r} is read-only")
        self.param_name = param_name


class TorqueMustBeDisabled(BridgeError):
    def __init__(self, param_name: str, servo_id: int):
        super().__init__(
            f"Torque must be disabled on servo {servo_id} before writing {param_name!r}"
        )
        self.param_name = param_name
        self.servo_id = servo_id
