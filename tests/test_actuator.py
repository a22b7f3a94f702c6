"""ServoActuatorActor: boot sequence, joint validation and position commands."""

import math
import time
from unittest.mock import Mock

import pytest

from feetech_servo.actors.servo_actuator_actor import ServoActuatorActor, disarm
from feetech_servo.core.bus import Topics
from feetech_servo.core.config import ActuatorConfig
from feetech_servo.core.errors import JointConfigError, NotArmedError
from feetech_servo.core.messages import (
    BeginMotion,
    Command,
    PositionCommand,
    RegisterServo,
    Write,
    WriteRaw,
)
from feetech_servo.robot.model import Joint, JointLimits, JointType, RobotModel

from conftest import wait_until


@pytest.fixture
def controller():
    return Mock()


def make_actuator(bus, controller, safety, model, config):
    actuator = ServoActuatorActor(bus, config, controller, safety, model)
    actuator.setup()
    controller.reset_mock()
    return actuator


@pytest.fixture
def actuator(bus, controller, safety, model, shoulder_config):
    return make_actuator(bus, controller, safety, model, shoulder_config)


def goal_writes(controller):
    return [c.args[0].value for c in controller.cast.call_args_list]


# ============ Boot ============

def test_setup_puts_servo_in_safe_state(bus, controller, safety, model, shoulder_config):
    actuator = ServoActuatorActor(bus, shoulder_config, controller, safety, model)
    actuator.setup()

    requests = [c.args[0] for c in controller.call.call_args_list]
    assert requests == [
        Write(1, "torque_enable", False),
        WriteRaw(1, "goal_position", 2048),
        RegisterServo(servo_id=1, joint_name="shoulder", center_angle=0.0, position_deadband=2, reverse=False),
    ]
    controller.cast.assert_not_called()


def test_setup_derives_limits(actuator):
    assert actuator.lower_limit == pytest.approx(-math.pi / 2)
    assert actuator.upper_limit == pytest.approx(math.pi / 2)
    assert actuator.center_angle == pytest.approx(0.0)
    assert actuator.range == pytest.approx(math.pi)
    assert actuator.velocity_limit == pytest.approx(math.pi / 3)
    assert actuator.current_angle == actuator.center_angle


def test_offset_joint_centers_on_its_midpoint(bus, controller, safety):
    model = RobotModel("arm", [Joint("offset", JointType.REVOLUTE, JointLimits(0.0, 1.0, 1.0))])
    actuator = ServoActuatorActor(bus, ActuatorConfig(joint="offset", servo_id=4), controller, safety, model)
    actuator.setup()

    register = controller.call.call_args_list[-1].args[0]
    assert register.center_angle == pytest.approx(0.5)
    # Center always maps to the servo's mechanical center
    assert controller.call.call_args_list[1].args[0] == WriteRaw(4, "goal_position", 2048)


def test_setup_registers_with_safety(actuator, safety):
    registration = safety.registration("shoulder/servo")
    assert registration.path == ("shoulder", "servo")
    assert registration.hook is disarm


def test_disarm_hook_is_a_noop():
    assert disarm() is True
    assert disarm({"anything": 1}) is True


@pytest.mark.parametrize("joint,reason", [
    ("wheel", "continuous"),
    ("loose", "no limits"),
    ("missing", "not found"),
])
def test_unusable_joint_is_rejected(bus, controller, safety, model, joint, reason):
    actuator = ServoActuatorActor(bus, ActuatorConfig(joint=joint, servo_id=5), controller, safety, model)

    with pytest.raises(JointConfigError, match=reason):
        actuator.setup()

    controller.call.assert_not_called()


def test_controller_failure_during_setup_propagates(bus, controller, safety, model, shoulder_config):
    controller.call.side_effect = RuntimeError("controller down")
    actuator = ServoActuatorActor(bus, shoulder_config, controller, safety, model)

    with pytest.raises(RuntimeError):
        actuator.setup()


# ============ Commands while armed ============

@pytest.mark.parametrize("position,raw", [
    (0.0, 2048),
    (math.pi / 4, 2560),
    (-math.pi / 4, 1536),
    (math.pi, 3072),    # clamped to upper
    (-math.pi, 1024),   # clamped to lower
])
def test_command_writes_goal(actuator, controller, safety, position, raw):
    safety.arm()

    actuator.handle_info(PositionCommand(position))

    controller.cast.assert_called_once_with(WriteRaw(1, "goal_position", raw))


def test_reversed_servo_mirrors_goal(bus, controller, safety, model):
    config = ActuatorConfig(joint="shoulder", servo_id=1, reverse=True)
    actuator = make_actuator(bus, controller, safety, model, config)
    safety.arm()

    actuator.handle_info(PositionCommand(math.pi / 4))

    assert goal_writes(controller) == [1536]


def test_clamped_target_becomes_current_angle(actuator, safety):
    safety.arm()
    actuator.handle_info(PositionCommand(math.pi))
    assert actuator.current_angle == pytest.approx(math.pi / 2)


def test_begin_motion_is_published(actuator, safety, collect):
    motions = collect(Topics.actuator("shoulder", "servo"))
    safety.arm()

    before = time.time()
    actuator.handle_info(PositionCommand(math.pi / 4, command_id="cmd-1"))

    assert len(motions) == 1
    motion = motions[0]
    assert isinstance(motion, BeginMotion)
    assert motion.initial_position == pytest.approx(0.0)
    assert motion.target_position == pytest.approx(math.pi / 4)
    assert motion.command_id == "cmd-1"
    # pi/4 at pi/3 rad/s
    assert motion.expected_arrival - before == pytest.approx(0.75, abs=0.05)


def test_successive_commands_track_initial_position(actuator, safety, collect):
    motions = collect(Topics.actuator("shoulder", "servo"))
    safety.arm()

    actuator.handle_info(PositionCommand(0.5))
    actuator.handle_info(PositionCommand(-0.5))

    assert [(m.initial_position, m.target_position) for m in motions] == [
        pytest.approx((0.0, 0.5)),
        pytest.approx((0.5, -0.5)),
    ]


def test_zero_velocity_limit_arrives_immediately(bus, controller, safety):
    model = RobotModel("arm", [Joint("stiff", JointType.PRISMATIC, JointLimits(-1.0, 1.0))])
    actuator = make_actuator(bus, controller, safety, model, ActuatorConfig(joint="stiff", servo_id=6))
    safety.arm()

    before = time.time()
    motion = actuator.handle_command(PositionCommand(0.5))

    assert motion.expected_arrival - before == pytest.approx(0.0, abs=0.05)


def test_cast_command_is_applied(actuator, controller, safety):
    safety.arm()
    actuator.handle_cast(Command(PositionCommand(0.0)))
    assert goal_writes(controller) == [2048]


def test_acknowledged_command_returns_motion(actuator, controller, safety):
    safety.arm()

    motion = actuator.handle_call(Command(PositionCommand(math.pi / 4, command_id=7)))

    assert motion.command_id == 7
    assert goal_writes(controller) == [2560]


def test_own_begin_motion_is_ignored(actuator, controller, safety):
    safety.arm()
    actuator.handle_info(BeginMotion(0.0, 1.0, time.time()))
    actuator.handle_info("garbage")
    controller.cast.assert_not_called()


# ============ Commands while disarmed ============

def test_topic_command_dropped_when_disarmed(actuator, controller, collect):
    motions = collect(Topics.actuator("shoulder", "servo"))

    actuator.handle_info(PositionCommand(0.5))

    controller.cast.assert_not_called()
    assert motions == []
    assert actuator.current_angle == pytest.approx(0.0)


def test_cast_command_dropped_when_disarmed(actuator, controller):
    actuator.handle_cast(Command(PositionCommand(0.5)))
    controller.cast.assert_not_called()


def test_acknowledged_command_rejected_when_disarmed(actuator, controller):
    with pytest.raises(NotArmedError):
        actuator.handle_call(Command(PositionCommand(0.5)))
    controller.cast.assert_not_called()


def test_commands_dropped_after_disarm(actuator, controller, safety):
    safety.arm()
    safety.disarm()

    actuator.handle_info(PositionCommand(0.5))

    controller.cast.assert_not_called()


# ============ Running on its own thread ============

def test_running_actuator_follows_topic(bus, controller, safety, model, shoulder_config, collect):
    motions = collect(Topics.actuator("shoulder", "servo"))
    actuator = ServoActuatorActor(bus, shoulder_config, controller, safety, model)
    actuator.start()
    try:
        safety.arm()
        bus.publish(Topics.actuator("shoulder", "servo"), PositionCommand(math.pi / 4))
        assert wait_until(lambda: controller.cast.called)

        motion = actuator.call(Command(PositionCommand(0.0)))
        assert motion.initial_position == pytest.approx(math.pi / 4)
    finally:
        actuator.stop()

    assert goal_writes(controller) == [2560, 2048]
    # One per accepted command
    assert sum(isinstance(m, BeginMotion) for m in motions) == 2
