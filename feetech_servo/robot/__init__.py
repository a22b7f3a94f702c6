"""Bus driver, control tables and robot topology."""

from .bus_driver import BusDriver
from .control_table import ControlTable, Register, get_control_table
from .conversions import angle_to_raw, clamp_angle, raw_to_angle, servo_rad_to_joint_angle

# Lazy imports to avoid loading scservo_sdk / yourdfpy when only the
# conversions or the driver interface are needed


def __getattr__(name):
    if name == "FeetechDriver":
        from .feetech_driver import FeetechDriver
        return FeetechDriver
    if name in ("RobotModel", "Joint", "JointLimits", "JointType"):
        from . import model
        return getattr(model, name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = [
    "BusDriver",
    "ControlTable",
    "Register",
    "get_control_table",
    "angle_to_raw",
    "clamp_angle",
    "raw_to_angle",
    "servo_rad_to_joint_angle",
    "FeetechDriver",
    "RobotModel",
    "Joint",
    "JointLimits",
    "JointType",
]
