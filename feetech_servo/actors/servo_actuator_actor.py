"""
Servo Actuator Actor - drives one joint with one Feetech servo.

Responsibilities:
- Derive center, range and velocity limit from the joint's limits
- Hold the servo limp at its center goal until the robot arms
- Register the servo with its controller for feedback and arming
- Turn position commands into goal_position writes
- Publish BeginMotion for every accepted command

Never touches the bus itself; all I/O goes through the controller.
"""

import logging
import time
from typing import Any, Optional

from ..core.actor import MailboxActor
from ..core.bus import MessageBus, Topics
from ..core.config import ActuatorConfig
from ..core.errors import JointConfigError, NotArmedError
from ..core.messages import BeginMotion, Command, PositionCommand, RegisterServo, Write, WriteRaw
from ..core.safety import SafetyController
from ..robot.conversions import angle_to_raw, clamp_angle
from ..robot.model import RobotModel

logger = logging.getLogger(__name__)


def disarm(_opts: Any = None) -> bool:
    """Torque is switched off by the controller; nothing to do per actuator."""
    return True


class ServoActuatorActor(MailboxActor):
    """
    Position actuator for one servo.

    Subscribes: /actuator/{joint}/{name} (PositionCommand)
    Publishes: /actuator/{joint}/{name} (BeginMotion)
    """

    def __init__(
        self,
        bus: MessageBus,
        config: ActuatorConfig,
        controller: MailboxActor,
        safety: SafetyController,
        model: RobotModel,
    ):
        super().__init__(name=f"ServoActuator[{config.joint}]", bus=bus, config=config)

        self.controller = controller
        self.safety = safety
        self.model = model

        self.servo_id = config.servo_id
        self.joint_name = config.joint
        self.reverse = config.reverse
        self.position_deadband = config.position_deadband
        self.topic = Topics.actuator(config.joint, config.name)

        # Derived from the joint in setup()
        self.lower_limit = 0.0
        self.upper_limit = 0.0
        self.center_angle = 0.0
        self.range = 0.0
        self.velocity_limit = 0.0
        self.current_angle = 0.0

    def setup(self) -> None:
        """
        Read joint limits and put the servo in a safe boot state.

        Raises:
            JointConfigError: joint missing, unbounded or without limits
        """
        self._load_joint_limits()

        # Limp and centered until the controller arms it
        self.controller.call(Write(self.servo_id, "torque_enable", False))
        center_raw = angle_to_raw(self.center_angle, self.center_angle, self.reverse)
        self.controller.call(WriteRaw(self.servo_id, "goal_position", center_raw))

        self.controller.call(RegisterServo(
            servo_id=self.servo_id,
            joint_name=self.joint_name,
            center_angle=self.center_angle,
            position_deadband=self.position_deadband,
            reverse=self.reverse,
        ))

        self.safety.register(
            f"{self.joint_name}/{self.config.name}",
            (self.joint_name, self.config.name),
            disarm,
        )
        self.bus.subscribe_callback(self.topic, self._on_topic)

    def _load_joint_limits(self) -> None:
        joint = self.model.get_joint(self.joint_name)
        if joint is None:
            raise JointConfigError(self.joint_name, "joint not found in robot model")
        if not joint.type.bounded:
            raise JointConfigError(
                self.joint_name,
                f"{joint.type.value} joints are not supported, servo needs a bounded range",
            )
        if joint.limits is None:
            raise JointConfigError(self.joint_name, "joint has no limits defined")

        limits = joint.limits
        self.lower_limit = limits.lower
        self.upper_limit = limits.upper
        self.center_angle = (limits.lower + limits.upper) / 2
        self.range = limits.upper - limits.lower
        self.velocity_limit = limits.velocity or 0.0
        self.current_angle = self.center_angle

    def teardown(self) -> None:
        self.bus.unsubscribe_callback(self.topic, self._on_topic)

    def _on_topic(self, message: Any) -> None:
        self.send(message)

    # ------------------------------------------------------------------
    # Command paths
    # ------------------------------------------------------------------

    def handle_info(self, message: Any) -> None:
        # Our own BeginMotion comes back on the same topic
        if isinstance(message, PositionCommand):
            self.handle_command(message)

    def handle_cast(self, request: Any) -> None:
        if isinstance(request, Command):
            self.handle_command(request.command)
        else:
            super().handle_cast(request)

    def handle_call(self, request: Any) -> Any:
        if isinstance(request, Command):
            return self.handle_command(request.command, acknowledged=True)
        return super().handle_call(request)

    def handle_command(self, command: PositionCommand, acknowledged: bool = False) -> Optional[BeginMotion]:
        """
        Apply a position command.

        Dropped while disarmed; on the acknowledged path that raises
        NotArmedError instead.
        """
        if not self.safety.is_armed():
            if acknowledged:
                raise NotArmedError(f"{self.joint_name}: robot is not armed")
            logger.debug("[%s] Not armed, dropping command", self.name)
            return None

        target = clamp_angle(command.position, self.lower_limit, self.upper_limit)
        raw = angle_to_raw(target, self.center_angle, self.reverse)
        self.controller.cast(WriteRaw(self.servo_id, "goal_position", raw))

        initial = self.current_angle
        self.current_angle = target

        travel_time = abs(target - initial) / self.velocity_limit if self.velocity_limit > 0 else 0.0
        motion = BeginMotion(
            initial_position=initial,
            target_position=target,
            expected_arrival=time.time() + travel_time,
            command_id=command.command_id,
        )
        self.bus.publish(self.topic, motion)
        return motion
