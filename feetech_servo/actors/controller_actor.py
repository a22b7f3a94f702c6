"""
Controller Actor - sole owner of one Feetech serial bus.

Responsibilities:
- Start and stop the bus driver
- Keep the registry of servos announced by actuators
- Forward parameter reads/writes from actuators and the parameter bridge
- Poll present positions and publish JointState when they move
- Poll status registers, publish ServoStatus and raise diagnostics
- Stage goal = present before enabling torque when the robot arms
- Register a disarm hook + snapshot with the safety controller

All bus traffic is serialised through this actor's mailbox.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..core import diagnostics
from ..core.actor import MailboxActor
from ..core.bus import MessageBus, Topics
from ..core.config import ArmReadFailurePolicy, ControllerConfig, DisarmAction
from ..core.errors import CommunicationError, DriverStartError, HardwareAlert
from ..core.messages import (
    ArmState,
    BulkRead,
    BulkWrite,
    GetControlTable,
    JointState,
    ListServos,
    Ping,
    Read,
    ReadRaw,
    RegisterServo,
    ServoStatus,
    Transition,
    Write,
    WriteRaw,
)
from ..core.safety import DisarmSnapshot, SafetyController
from ..robot.bus_driver import BusDriver
from ..robot.control_table import ControlTable, get_control_table
from ..robot.conversions import deadband_rad, servo_rad_to_joint_angle

logger = logging.getLogger(__name__)

POLL_START_DELAY_S = 0.1

# Bit 4 of hardware_error_status is the torque flag
TORQUE_STATUS_BIT = 0x10

TEMPERATURE_DEADBAND = 1.0  # C
VOLTAGE_DEADBAND = 0.1  # V
LOAD_DEADBAND = 5.0  # %

TEMPERATURE_WARN = 55.0
TEMPERATURE_ERROR = 70.0
VOLTAGE_LOW = 5.5
VOLTAGE_HIGH = 8.0


class Tick(Enum):
    START_POLLING = "start_polling"
    POLL_POSITIONS = "poll_positions"
    POLL_STATUS = "poll_status"


class TemperatureCondition(Enum):
    CRITICAL = "critical"
    ELEVATED = "elevated"
    NORMAL = "normal"


class VoltageCondition(Enum):
    LOW = "low"
    HIGH = "high"
    NORMAL = "normal"


@dataclass
class ServoRegistration:
    """A servo announced by its actuator."""
    servo_id: int
    joint_name: str
    center_angle: float  # radians
    position_deadband: int  # raw steps
    reverse: bool
    last_position_raw: Optional[float] = None  # servo radians of the last published reading


@dataclass(frozen=True)
class StatusSnapshot:
    """Status registers of one servo. None means the read failed."""
    temperature: Optional[float] = None
    voltage: Optional[float] = None
    load: Optional[float] = None
    hardware_error: Optional[int] = None


# ============ Disarm (runs without the actor) ============

def disarm(snapshot: DisarmSnapshot) -> bool:
    """
    Disarm hook registered with the safety controller.

    Works from the snapshot alone, so it still runs after the controller
    actor has died. Never raises.
    """
    if snapshot.disarm_action == DisarmAction.HOLD:
        return True

    if not snapshot.servo_ids:
        return True

    try:
        snapshot.driver.bulk_write("torque_enable", [(sid, False) for sid in snapshot.servo_ids])
        snapshot.driver.bulk_write("lock", [(sid, True) for sid in snapshot.servo_ids])
    except Exception as e:
        logger.warning("[ControllerActor] Disarm write failed, ignoring: %s", e)
    return True


# ============ Change detection ============

def _value_changed(new: Optional[float], old: Optional[float], deadband: float) -> bool:
    if new is None:
        return False
    if old is None:
        return True
    return abs(new - old) >= deadband


def status_changed(new: StatusSnapshot, previous: Optional[StatusSnapshot]) -> bool:
    """Whether a status snapshot differs enough from the last published one."""
    if previous is None:
        return True
    return (
        _value_changed(new.temperature, previous.temperature, TEMPERATURE_DEADBAND)
        or _value_changed(new.voltage, previous.voltage, VOLTAGE_DEADBAND)
        or _value_changed(new.load, previous.load, LOAD_DEADBAND)
        or new.hardware_error != previous.hardware_error
    )


def crossed_threshold(value: float, last: Optional[float], threshold: float, upward: bool) -> bool:
    """Edge detection. With no previous value, being past the threshold counts as crossing."""
    if upward:
        return value >= threshold and (last is None or last < threshold)
    return value < threshold and (last is None or last >= threshold)


def temperature_condition(temperature: float, last: Optional[float]) -> Optional[TemperatureCondition]:
    if crossed_threshold(temperature, last, TEMPERATURE_ERROR, upward=True):
        return TemperatureCondition.CRITICAL
    if crossed_threshold(temperature, last, TEMPERATURE_WARN, upward=True):
        return TemperatureCondition.ELEVATED
    if crossed_threshold(temperature, last, TEMPERATURE_WARN, upward=False):
        return TemperatureCondition.NORMAL
    return None


def _voltage_in_range(voltage: float) -> bool:
    return VOLTAGE_LOW <= voltage <= VOLTAGE_HIGH


def voltage_condition(voltage: float, last: Optional[float]) -> Optional[VoltageCondition]:
    if crossed_threshold(voltage, last, VOLTAGE_LOW, upward=False):
        return VoltageCondition.LOW
    if crossed_threshold(voltage, last, VOLTAGE_HIGH, upward=True):
        return VoltageCondition.HIGH
    if last is not None and _voltage_in_range(voltage) and not _voltage_in_range(last):
        return VoltageCondition.NORMAL
    return None


class ControllerActor(MailboxActor):
    """
    Feetech bus controller.

    Subscribes: /state_machine
    Publishes: /sensor/{controller}/{joint} (JointState),
               /sensor/{controller}/servo_status (ServoStatus),
               /diagnostics
    """

    def __init__(
        self,
        bus: MessageBus,
        config: ControllerConfig,
        safety: SafetyController,
        driver: Optional[BusDriver] = None,
        path: Optional[Sequence[str]] = None,
    ):
        super().__init__(name="ControllerActor", bus=bus, config=config)

        self.safety = safety
        self.path: Tuple[str, ...] = tuple(path) if path is not None else (config.name,)
        self.driver = driver
        self.control_table: Optional[ControlTable] = None

        self.poll_interval_s = config.poll_interval_ms / 1000.0
        self.status_poll_interval_s = config.status_poll_interval_ms / 1000.0
        self.disarm_action = config.disarm_action

        self.registry: Dict[int, ServoRegistration] = {}
        self.last_status: Dict[int, StatusSnapshot] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def setup(self) -> None:
        """Start the bus driver, register with safety and schedule polling."""
        self.control_table = get_control_table(self.config.control_table)

        if self.driver is None:
            # Lazy import: scservo_sdk is only needed for real hardware
            from ..robot.feetech_driver import FeetechDriver
            self.driver = FeetechDriver()

        try:
            self.driver.start(self.config.port, self.config.baud_rate, self.control_table)
        except DriverStartError:
            raise
        except Exception as e:
            raise DriverStartError(e) from e

        self._register_with_safety()
        self.bus.subscribe_callback(Topics.STATE_MACHINE, self._on_state_machine)
        self.send_after(POLL_START_DELAY_S, Tick.START_POLLING)

        logger.info(
            "[%s] Bus %s open, polling every %.0fms",
            self.name, self.config.port, self.poll_interval_s * 1000,
        )

    def teardown(self) -> None:
        self.bus.unsubscribe_callback(Topics.STATE_MACHINE, self._on_state_machine)
        if self.driver is not None and self.driver.is_alive:
            self.driver.stop()

    def _on_state_machine(self, message: Any) -> None:
        # Runs on the publisher's thread: only hand over to the mailbox
        self.send(message)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def handle_call(self, request: Any) -> Any:
        if isinstance(request, RegisterServo):
            return self.register_servo(request)
        if isinstance(request, Read):
            return self.driver.read(request.servo_id, request.param)
        if isinstance(request, ReadRaw):
            return self.driver.read_raw(request.servo_id, request.param)
        if isinstance(request, Write):
            self.driver.write(request.servo_id, request.param, request.value, wait_for_ack=True)
            return True
        if isinstance(request, WriteRaw):
            self.driver.write_raw(request.servo_id, request.param, request.value, wait_for_ack=True)
            return True
        if isinstance(request, BulkRead):
            return self.driver.bulk_read(list(request.servo_ids), request.param)
        if isinstance(request, BulkWrite):
            self.driver.bulk_write(request.param, list(request.values))
            return True
        if isinstance(request, Ping):
            return self.driver.ping(request.servo_id)
        if isinstance(request, ListServos):
            return sorted(self.registry)
        if isinstance(request, GetControlTable):
            return self.control_table
        return super().handle_call(request)

    def handle_cast(self, request: Any) -> None:
        try:
            if isinstance(request, Write):
                self.driver.write(request.servo_id, request.param, request.value, wait_for_ack=False)
            elif isinstance(request, WriteRaw):
                self.driver.write_raw(request.servo_id, request.param, request.value, wait_for_ack=False)
            elif isinstance(request, BulkWrite):
                self.driver.bulk_write(request.param, list(request.values))
            else:
                super().handle_cast(request)
        except CommunicationError as e:
            logger.warning("[%s] %s", self.name, e)

    def handle_info(self, message: Any) -> None:
        if message is Tick.START_POLLING:
            self.send_after(0, Tick.POLL_POSITIONS)
            if self.status_poll_interval_s > 0:
                self.send_after(0, Tick.POLL_STATUS)
        elif message is Tick.POLL_POSITIONS:
            try:
                self.poll_positions()
            finally:
                self.send_after(self.poll_interval_s, Tick.POLL_POSITIONS)
        elif message is Tick.POLL_STATUS:
            try:
                self.poll_status()
            finally:
                self.send_after(self.status_poll_interval_s, Tick.POLL_STATUS)
        elif isinstance(message, Transition):
            if message.to_state == ArmState.ARMED:
                self.arm()
        else:
            super().handle_info(message)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register_servo(self, request: RegisterServo) -> bool:
        self.registry[request.servo_id] = ServoRegistration(
            servo_id=request.servo_id,
            joint_name=request.joint_name,
            center_angle=request.center_angle,
            position_deadband=request.position_deadband,
            reverse=request.reverse,
        )
        self._register_with_safety()
        logger.info("[%s] Registered servo %d (%s)", self.name, request.servo_id, request.joint_name)
        return True

    def _register_with_safety(self) -> None:
        snapshot = DisarmSnapshot(
            driver=self.driver,
            servo_ids=tuple(sorted(self.registry)),
            disarm_action=self.disarm_action,
        )
        self.safety.register(self.config.name, self.path, disarm, snapshot)

    def joint_name(self, servo_id: int) -> str:
        registration = self.registry.get(servo_id)
        return registration.joint_name if registration else f"servo_{servo_id}"

    def _component(self, *suffix: str) -> Tuple[str, ...]:
        return (self.safety.robot_name, *self.path, *suffix)

    # ------------------------------------------------------------------
    # Position feedback
    # ------------------------------------------------------------------

    def poll_positions(self) -> None:
        """One batched position read, publishing every reading outside its deadband."""
        if not self.registry:
            return

        servo_ids = list(self.registry)
        try:
            positions = self.driver.bulk_read(servo_ids, "present_position")
        except CommunicationError as e:
            logger.warning("[%s] Failed to read positions: %s", self.name, e)
            diagnostics.error(
                self.bus, self._component(), "Communication error reading positions", reason=str(e)
            )
            return

        for servo_id, position_rad in zip(servo_ids, positions):
            registration = self.registry[servo_id]
            last = registration.last_position_raw
            if last is not None and abs(position_rad - last) < deadband_rad(registration.position_deadband):
                continue

            registration.last_position_raw = position_rad
            angle = servo_rad_to_joint_angle(position_rad, registration.center_angle, registration.reverse)
            self.bus.publish(
                Topics.joint_state(self.config.name, registration.joint_name),
                JointState(names=(registration.joint_name,), positions=(angle,)),
            )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def poll_status(self) -> None:
        if not self.registry:
            return

        servo_ids = sorted(self.registry)
        temperatures = self._read_status_param(servo_ids, "present_temperature")
        voltages = self._read_status_param(servo_ids, "present_voltage")
        loads = self._read_status_param(servo_ids, "present_load")
        errors = self._read_status_param(servo_ids, "hardware_error_status")

        for i, servo_id in enumerate(servo_ids):
            bits = errors[i]
            status = StatusSnapshot(
                temperature=temperatures[i],
                voltage=voltages[i],
                load=loads[i],
                hardware_error=None if bits is None else int(bits) & ~TORQUE_STATUS_BIT,
            )
            previous = self.last_status.get(servo_id)
            if not status_changed(status, previous):
                continue

            self._publish_status(servo_id, status)
            self._maybe_report_hardware_error(servo_id, status, previous)
            self._emit_temperature_diagnostic(servo_id, status.temperature, previous)
            self._emit_voltage_diagnostic(servo_id, status.voltage, previous)
            self.last_status[servo_id] = status

    def _read_status_param(self, servo_ids: List[int], param: str) -> List[Optional[Any]]:
        try:
            return list(self.driver.bulk_read(servo_ids, param))
        except CommunicationError as e:
            logger.warning("[%s] Failed to read %s: %s", self.name, param, e)
            return [None] * len(servo_ids)

    def _publish_status(self, servo_id: int, status: StatusSnapshot) -> None:
        self.bus.publish(
            Topics.servo_status(self.config.name),
            ServoStatus(
                servo_id=servo_id,
                temperature=status.temperature if status.temperature is not None else 0.0,
                voltage=status.voltage if status.voltage is not None else 0.0,
                load=status.load if status.load is not None else 0.0,
                hardware_error=status.hardware_error,
            ),
        )

    def _maybe_report_hardware_error(
        self, servo_id: int, status: StatusSnapshot, previous: Optional[StatusSnapshot]
    ) -> None:
        bits = status.hardware_error
        if not bits:
            return
        if previous is not None and previous.hardware_error == bits:
            return

        joint_name = self.joint_name(servo_id)
        alert = HardwareAlert.from_bits(servo_id, bits)
        self.safety.report_error((*self.path, joint_name), alert)
        diagnostics.error(
            self.bus,
            self._component(joint_name),
            "Hardware error detected",
            servo_id=servo_id,
            error_bits=bits,
            alerts=[a.value for a in alert.alerts],
        )

    def _emit_temperature_diagnostic(
        self, servo_id: int, temperature: Optional[float], previous: Optional[StatusSnapshot]
    ) -> None:
        if temperature is None:
            return
        condition = temperature_condition(temperature, previous.temperature if previous else None)
        if condition is None:
            return

        component = self._component(self.joint_name(servo_id))
        if condition == TemperatureCondition.CRITICAL:
            diagnostics.error(self.bus, component, "Temperature critical",
                              temperature=temperature, threshold=TEMPERATURE_ERROR, servo_id=servo_id)
        elif condition == TemperatureCondition.ELEVATED:
            diagnostics.warn(self.bus, component, "Temperature elevated",
                             temperature=temperature, threshold=TEMPERATURE_WARN, servo_id=servo_id)
        else:
            diagnostics.ok(self.bus, component, "Temperature normal",
                           temperature=temperature, servo_id=servo_id)

    def _emit_voltage_diagnostic(
        self, servo_id: int, voltage: Optional[float], previous: Optional[StatusSnapshot]
    ) -> None:
        if voltage is None:
            return
        condition = voltage_condition(voltage, previous.voltage if previous else None)
        if condition is None:
            return

        component = self._component(self.joint_name(servo_id))
        if condition == VoltageCondition.LOW:
            diagnostics.warn(self.bus, component, "Voltage low",
                             voltage=voltage, threshold=VOLTAGE_LOW, servo_id=servo_id)
        elif condition == VoltageCondition.HIGH:
            diagnostics.warn(self.bus, component, "Voltage high",
                             voltage=voltage, threshold=VOLTAGE_HIGH, servo_id=servo_id)
        else:
            diagnostics.ok(self.bus, component, "Voltage normal", voltage=voltage, servo_id=servo_id)

    # ------------------------------------------------------------------
    # Arming
    # ------------------------------------------------------------------

    def arm(self) -> None:
        """
        Enable torque on every registered servo without a jump.

        The goal register may still hold a stale target, so goal = present is
        staged for every servo and committed in one broadcast before torque
        is switched on. Only a failed torque-on or lock write fails the arm.
        """
        if not self.registry:
            return

        servo_ids = sorted(self.registry)
        try:
            self.driver.bulk_write_raw("torque_enable", [(sid, 0) for sid in servo_ids])
        except CommunicationError as e:
            logger.warning("[%s] Torque off before arming failed: %s", self.name, e)

        if not self._stage_present_positions(servo_ids):
            if self.config.arm_read_failure_policy == ArmReadFailurePolicy.ABORT:
                diagnostics.error(
                    self.bus, self._component(), "Arming aborted",
                    reason="present positions could not be read", servo_ids=servo_ids,
                )
                return
            diagnostics.warn(
                self.bus, self._component(), "Arming without staged positions",
                reason="present positions could not be read", servo_ids=servo_ids,
            )

        try:
            self.driver.bulk_write_raw("torque_enable", [(sid, 1) for sid in servo_ids])
            self.driver.bulk_write_raw("lock", [(sid, 1) for sid in servo_ids])
        except CommunicationError as e:
            logger.error("[%s] Arming failed: %s", self.name, e)
            diagnostics.error(self.bus, self._component(), "Arming failed", reason=str(e))
            return

        logger.info("[%s] Torque enabled on servos %s", self.name, servo_ids)

    def _stage_present_positions(self, servo_ids: List[int]) -> bool:
        """Stage goal = present on every servo and commit. False if positions could not be read."""
        try:
            positions = self.driver.bulk_read(servo_ids, "present_position")
        except CommunicationError as e:
            logger.warning("[%s] Failed to read positions before arming: %s", self.name, e)
            return False

        for servo_id, position_rad in zip(servo_ids, positions):
            try:
                self.driver.staged_write(servo_id, "goal_position", position_rad)
            except CommunicationError as e:
                logger.warning("[%s] Servo %d staged write failed: %s", self.name, servo_id, e)

        try:
            self.driver.commit_staged()
        except CommunicationError as e:
            logger.warning("[%s] Commit of staged goals failed: %s", self.name, e)
        return True
