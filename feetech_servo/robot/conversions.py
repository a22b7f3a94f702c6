"""
Joint-space <-> servo-space position mapping.

Servo raw units: 0..4095 per revolution, 2048 is the mechanical center,
which is pi in servo radians. The joint's center angle maps to 2048.
"""

import numpy as np

POSITION_RESOLUTION = 4096
CENTER_RAW = 2048
MAX_RAW = POSITION_RESOLUTION - 1
SERVO_CENTER_RAD = np.pi
STEPS_PER_RAD = POSITION_RESOLUTION / (2 * np.pi)


def clamp_angle(angle: float, lower: float, upper: float) -> float:
    """Clamp a joint angle into [lower, upper]."""
    return float(np.clip(angle, lower, upper))


def angle_to_raw(angle: float, center_angle: float, reverse: bool = False) -> int:
    """Joint angle (rad) -> raw goal position, clamped to 0..4095."""
    sign = -1.0 if reverse else 1.0
    raw = int(round(CENTER_RAW + sign * (angle - center_angle) * STEPS_PER_RAD))
    return int(np.clip(raw, 0, MAX_RAW))


def raw_to_angle(raw: int, center_angle: float, reverse: bool = False) -> float:
    """Raw position -> joint angle (rad). Inverse of angle_to_raw within rounding."""
    sign = -1.0 if reverse else 1.0
    return float(center_angle + sign * (raw - CENTER_RAW) / STEPS_PER_RAD)


def servo_rad_to_joint_angle(position_rad: float, center_angle: float, reverse: bool = False) -> float:
    """Servo position in radians (0..2pi, center pi) -> joint angle."""
    offset = position_rad - SERVO_CENTER_RAD
    if reverse:
        offset = -offset
    return float(center_angle + offset)


def deadband_rad(steps: int) -> float:
    """Deadband in raw steps -> radians."""
    return steps / STEPS_PER_RAD
