"""
Typed message definitions.

Bus messages are immutable dataclasses published on the topics in
core.bus.Topics. Mailbox requests are the messages actors accept through
call() / cast().
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple


class ArmState(Enum):
    """Robot-wide safety state."""
    DISARMED = "disarmed"
    ARMED = "armed"
    ERROR = "error"


class DiagnosticLevel(Enum):
    OK = "ok"
    WARN = "warn"
    ERROR = "error"


class CommandType(Enum):
    POSITION = "position"


# ============ Bus messages ============

@dataclass(frozen=True, slots=True)
class JointState:
    """
    Position feedback for one joint.
    Published by: ControllerActor
    Topic: /sensor/{controller}/{joint}
    """
    names: Tuple[str, ...]
    positions: Tuple[float, ...]  # radians, joint space
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True, slots=True)
class ServoStatus:
    """
    Status registers of one servo. Unknown readings are published as 0.0.
    Published by: ControllerActor
    Topic: /sensor/{controller}/servo_status
    """
    servo_id: int
    temperature: float  # Celsius
    voltage: float  # Volts
    load: float  # percent, -100..100
    hardware_error: Optional[int] = None  # bitmask with the torque bit cleared
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True, slots=True)
class PositionCommand:
    """
    Joint position command.
    Published by: planners / teleop
    Topic: /actuator/{joint}/{actuator}
    """
    position: float  # radians
    command_id: Optional[Any] = None
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True, slots=True)
class BeginMotion:
    """
    Emitted when an actuator accepts a command.
    Published by: ServoActuatorActor
    Topic: /actuator/{joint}/{actuator}
    """
    initial_position: float
    target_position: float
    expected_arrival: float  # wall-clock timestamp
    command_id: Optional[Any] = None
    command_type: CommandType = CommandType.POSITION
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True, slots=True)
class Transition:
    """
    Safety state machine transition.
    Published by: SafetyController
    Topic: /state_machine
    """
    from_state: ArmState
    to_state: ArmState
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """
    Health report for a component path, e.g. ("feetech", "shoulder").
    Topic: /diagnostics
    """
    component: Tuple[str, ...]
    level: DiagnosticLevel
    message: str
    values: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True, slots=True)
class SafetyError:
    """
    Error reported to the safety controller.
    Topic: /safety/error
    """
    path: Tuple[str, ...]
    error: Exception
    severity: str = "critical"
    timestamp: float = field(default_factory=time.time)


# ============ Controller requests ============

@dataclass(frozen=True, slots=True)
class RegisterServo:
    servo_id: int
    joint_name: str
    center_angle: float
    position_deadband: int
    reverse: bool


@dataclass(frozen=True, slots=True)
class Read:
    servo_id: int
    param: str


@dataclass(frozen=True, slots=True)
class ReadRaw:
    servo_id: int
    param: str


@dataclass(frozen=True, slots=True)
class Write:
    """Converted-unit write. call() waits for the ack, cast() does not."""
    servo_id: int
    param: str
    value: Any


@dataclass(frozen=True, slots=True)
class WriteRaw:
    """Raw register write. call() waits for the ack, cast() does not."""
    servo_id: int
    param: str
    value: int


@dataclass(frozen=True, slots=True)
class BulkRead:
    servo_ids: Tuple[int, ...]
    param: str


@dataclass(frozen=True, slots=True)
class BulkWrite:
    param: str
    values: Sequence[Tuple[int, Any]]


@dataclass(frozen=True, slots=True)
class Ping:
    servo_id: int


@dataclass(frozen=True, slots=True)
class ListServos:
    pass


@dataclass(frozen=True, slots=True)
class GetControlTable:
    pass


# ============ Actuator requests ============

@dataclass(frozen=True, slots=True)
class Command:
    """Direct delivery of a command to an actuator mailbox."""
    command: PositionCommand
