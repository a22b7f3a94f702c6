"""
Configuration management with YAML loading and validation.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

MIN_SERVO_ID = 1
MAX_SERVO_ID = 253


class DisarmAction(str, Enum):
    """What the controller does to its servos when the robot disarms."""
    DISABLE_TORQUE = "disable_torque"  # servos go limp (safe default)
    HOLD = "hold"  # servos keep holding their last goal


class ArmReadFailurePolicy(str, Enum):
    """What arming does when present positions cannot be read first."""
    ENABLE_TORQUE = "enable_torque"  # enable torque anyway, without staged goals
    ABORT = "abort"  # leave torque disabled


@dataclass
class ControllerConfig:
    """Serial bus controller settings."""
    name: str = "feetech"
    port: str = "/dev/ttyUSB0"
    baud_rate: int = 1_000_000
    control_table: str = "STS3215"
    poll_interval_ms: int = 50  # 20Hz position feedback
    status_poll_interval_ms: int = 1000  # 0 disables status polling
    disarm_action: DisarmAction = DisarmAction.DISABLE_TORQUE
    arm_read_failure_policy: ArmReadFailurePolicy = ArmReadFailurePolicy.ENABLE_TORQUE

    def __post_init__(self):
        self.disarm_action = _enum(DisarmAction, self.disarm_action, "disarm_action")
        self.arm_read_failure_policy = _enum(
            ArmReadFailurePolicy, self.arm_read_failure_policy, "arm_read_failure_policy"
        )
        if self.poll_interval_ms <= 0:
            raise ConfigurationError(f"poll_interval_ms must be positive, got {self.poll_interval_ms}")
        if self.status_poll_interval_ms < 0:
            raise ConfigurationError(
                f"status_poll_interval_ms must not be negative, got {self.status_poll_interval_ms}"
            )


@dataclass
class ActuatorConfig:
    """One servo driving one joint."""
    joint: str
    servo_id: int
    name: str = "servo"
    controller: str = "feetech"
    reverse: bool = False
    position_deadband: int = 2  # raw steps

    def __post_init__(self):
        if not MIN_SERVO_ID <= self.servo_id <= MAX_SERVO_ID:
            raise ConfigurationError(
                f"servo_id must be in {MIN_SERVO_ID}-{MAX_SERVO_ID}, got {self.servo_id}"
            )
        if self.position_deadband < 0:
            raise ConfigurationError(f"position_deadband must not be negative, got {self.position_deadband}")


@dataclass
class JointConfig:
    """Inline joint definition, limits in radians and rad/s."""
    name: str
    type: str = "revolute"
    lower: Optional[float] = None
    upper: Optional[float] = None
    velocity: Optional[float] = None
    effort: Optional[float] = None


@dataclass
class RobotConfig:
    """Robot topology source: a URDF file or inline joints."""
    name: str = "robot"
    urdf: Optional[str] = None
    joints: List[JointConfig] = field(default_factory=list)


@dataclass
class Config:
    """Root configuration."""
    controller: ControllerConfig = field(default_factory=ControllerConfig)
    actuators: List[ActuatorConfig] = field(default_factory=list)
    robot: RobotConfig = field(default_factory=RobotConfig)

    def __post_init__(self):
        seen = set()
        for actuator in self.actuators:
            if actuator.servo_id in seen:
                raise ConfigurationError(f"servo_id {actuator.servo_id} is used twice")
            seen.add(actuator.servo_id)


def _enum(enum_cls, value, option: str):
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ConfigurationError(f"{option} must be one of {choices}, got {value!r}") from None


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, uses default config.

    Returns:
        Config object with all settings.
    """
    if config_path is None:
        return Config()

    path = Path(config_path)
    if not path.exists():
        logger.warning("[Config] %s not found, using defaults", config_path)
        return Config()

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return _dict_to_config(data)


def _dict_to_config(data: Dict[str, Any]) -> Config:
    """Convert dictionary to Config object."""
    defaults = ControllerConfig()
    c = data.get("controller", {}) or {}
    controller = ControllerConfig(
        name=c.get("name", defaults.name),
        port=c.get("port", defaults.port),
        baud_rate=c.get("baud_rate", defaults.baud_rate),
        control_table=c.get("control_table", defaults.control_table),
        poll_interval_ms=c.get("poll_interval_ms", defaults.poll_interval_ms),
        status_poll_interval_ms=c.get("status_poll_interval_ms", defaults.status_poll_interval_ms),
        disarm_action=c.get("disarm_action", defaults.disarm_action),
        arm_read_failure_policy=c.get("arm_read_failure_policy", defaults.arm_read_failure_policy),
    )

    actuators = []
    for a in data.get("actuators", []) or []:
        try:
            actuators.append(ActuatorConfig(
                joint=a["joint"],
                servo_id=a["servo_id"],
                name=a.get("name", "servo"),
                controller=a.get("controller", controller.name),
                reverse=a.get("reverse", False),
                position_deadband=a.get("position_deadband", 2),
            ))
        except KeyError as e:
            raise ConfigurationError(f"actuator entry {a!r} is missing {e.args[0]!r}") from None

    r = data.get("robot", {}) or {}
    joints = []
    for j in r.get("joints", []) or []:
        limits = j.get("limits", {}) or {}
        try:
            joints.append(JointConfig(
                name=j["name"],
                type=j.get("type", "revolute"),
                lower=limits.get("lower"),
                upper=limits.get("upper"),
                velocity=limits.get("velocity"),
                effort=limits.get("effort"),
            ))
        except KeyError as e:
            raise ConfigurationError(f"joint entry {j!r} is missing {e.args[0]!r}") from None
    robot = RobotConfig(name=r.get("name", "robot"), urdf=r.get("urdf"), joints=joints)

    return Config(controller=controller, actuators=actuators, robot=robot)


def save_config(config: Config, path: str) -> None:
    """Save configuration to YAML file."""
    c = config.controller
    data = {
        "controller": {
            "name": c.name,
            "port": c.port,
            "baud_rate": c.baud_rate,
            "control_table": c.control_table,
            "poll_interval_ms": c.poll_interval_ms,
            "status_poll_interval_ms": c.status_poll_interval_ms,
            "disarm_action": c.disarm_action.value,
            "arm_read_failure_policy": c.arm_read_failure_policy.value,
        },
        "actuators": [
            {
                "joint": a.joint,
                "servo_id": a.servo_id,
                "name": a.name,
                "controller": a.controller,
                "reverse": a.reverse,
                "position_deadband": a.position_deadband,
            }
            for a in config.actuators
        ],
        "robot": {
            "name": config.robot.name,
            "urdf": config.robot.urdf,
            "joints": [
                {
                    "name": j.name,
                    "type": j.type,
                    "limits": {
                        "lower": j.lower,
                        "upper": j.upper,
                        "velocity": j.velocity,
                        "effort": j.effort,
                    },
                }
                for j in config.robot.joints
            ],
        },
    }

    with open(path, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)
