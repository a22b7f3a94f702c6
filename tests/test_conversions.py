"""Joint angle <-> raw position mapping."""

import math

import numpy as np
import pytest

from feetech_servo.robot.conversions import (
    CENTER_RAW,
    MAX_RAW,
    angle_to_raw,
    clamp_angle,
    deadband_rad,
    raw_to_angle,
    servo_rad_to_joint_angle,
)

STEP = 2 * math.pi / 4096


def test_center_angle_maps_to_center_raw():
    assert angle_to_raw(0.0, 0.0) == CENTER_RAW
    assert angle_to_raw(0.7, 0.7) == CENTER_RAW
    assert angle_to_raw(0.7, 0.7, reverse=True) == CENTER_RAW


def test_quarter_turn_offsets():
    assert angle_to_raw(math.pi / 4, 0.0) == 2560
    assert angle_to_raw(-math.pi / 4, 0.0) == 1536
    assert angle_to_raw(math.pi / 2, 0.0) == 3072


def test_reverse_inverts_direction():
    assert angle_to_raw(math.pi / 4, 0.0, reverse=True) == 1536
    assert angle_to_raw(-math.pi / 4, 0.0, reverse=True) == 2560


def test_raw_is_clamped_to_device_range():
    assert angle_to_raw(10.0, 0.0) == MAX_RAW
    assert angle_to_raw(-10.0, 0.0) == 0


@pytest.mark.parametrize("center, reverse", [(0.0, False), (0.3, True), (-1.0, False)])
def test_raw_to_angle_inverts_angle_to_raw(center, reverse):
    for angle in np.linspace(center - 1.5, center + 1.5, 301):
        raw = angle_to_raw(angle, center, reverse)
        assert abs(raw_to_angle(raw, center, reverse) - angle) <= 0.5 * STEP + 1e-12

    for raw in range(0, 4096, 17):
        assert angle_to_raw(raw_to_angle(raw, center, reverse), center, reverse) == raw


def test_clamp_is_idempotent():
    lower, upper = -math.pi / 2, math.pi / 2
    for angle in np.linspace(-4.0, 4.0, 81):
        once = clamp_angle(angle, lower, upper)
        assert lower <= once <= upper
        assert clamp_angle(once, lower, upper) == once


def test_servo_radians_to_joint_angle():
    assert servo_rad_to_joint_angle(math.pi, 0.5) == pytest.approx(0.5)
    assert servo_rad_to_joint_angle(math.pi + 0.1, 0.0) == pytest.approx(0.1)
    assert servo_rad_to_joint_angle(math.pi + 0.1, 0.0, reverse=True) == pytest.approx(-0.1)


def test_deadband_in_radians():
    assert deadband_rad(0) == 0.0
    assert deadband_rad(2) == pytest.approx(2 * STEP)
