"""
Safety controller - arm state, disarm hooks and hardware error reports.

Responsibilities:
- Track whether the robot is armed and publish Transition messages
- Keep one disarm hook + snapshot per registered component
- Run every disarm hook on disarm or after a component crash
- Collect errors reported by components and publish them

The snapshots live here, not in the components, so a hook can still run
after the component that registered it has died.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from .bus import MessageBus, Topics
from .config import DisarmAction
from .messages import ArmState, SafetyError, Transition

logger = logging.getLogger(__name__)

DisarmHook = Callable[[Any], Any]


@dataclass(frozen=True)
class DisarmSnapshot:
    """Everything a controller's disarm hook needs, independent of the controller."""
    driver: Any
    servo_ids: Tuple[int, ...] = ()
    disarm_action: DisarmAction = DisarmAction.DISABLE_TORQUE


@dataclass(frozen=True)
class Registration:
    component_id: str
    path: Tuple[str, ...]
    hook: DisarmHook
    opts: Any


class SafetyController:
    """
    Safety state for one robot.

    Publishes: /state_machine (Transition), /safety/error (SafetyError)
    """

    def __init__(self, bus: MessageBus, robot_name: str = "robot"):
        self.bus = bus
        self.robot_name = robot_name

        self._lock = threading.Lock()
        self._state = ArmState.DISARMED
        self._registrations: Dict[str, Registration] = {}
        self._errors: List[SafetyError] = []

    def register(
        self,
        component_id: str,
        path: Tuple[str, ...],
        hook: DisarmHook,
        opts: Any = None,
    ) -> None:
        """Register (or replace) the disarm hook for a component."""
        with self._lock:
            self._registrations[component_id] = Registration(
                component_id=component_id,
                path=tuple(path),
                hook=hook,
                opts=opts,
            )

    def registration(self, component_id: str) -> Optional[Registration]:
        with self._lock:
            return self._registrations.get(component_id)

    @property
    def state(self) -> ArmState:
        with self._lock:
            return self._state

    def is_armed(self) -> bool:
        return self.state == ArmState.ARMED

    @property
    def errors(self) -> List[SafetyError]:
        with self._lock:
            return list(self._errors)

    def arm(self) -> bool:
        """Arm the robot. Refused while in the error state."""
        with self._lock:
            previous = self._state
            if previous == ArmState.ERROR:
                logger.warning("[Safety] Refusing to arm %s: in error state", self.robot_name)
                return False
            self._state = ArmState.ARMED

        if previous != ArmState.ARMED:
            logger.info("[Safety] %s armed", self.robot_name)
            self.bus.publish(Topics.STATE_MACHINE, Transition(previous, ArmState.ARMED))
        return True

    def disarm(self) -> None:
        """Disarm the robot and run every disarm hook."""
        self._enter(ArmState.DISARMED)

    def crash(self, component_id: str, reason: Any) -> None:
        """A component died. Run every disarm hook and latch the error state."""
        logger.error("[Safety] %s crashed: %s", component_id, reason)
        self._enter(ArmState.ERROR)

    def reset(self) -> None:
        """Clear a latched error state back to disarmed."""
        with self._lock:
            if self._state != ArmState.ERROR:
                return
            self._state = ArmState.DISARMED
        self.bus.publish(Topics.STATE_MACHINE, Transition(ArmState.ERROR, ArmState.DISARMED))

    def report_error(self, path: Tuple[str, ...], error: Exception) -> None:
        """Record an error reported by a component."""
        severity = getattr(error, "severity", "error")
        report = SafetyError(path=tuple(path), error=error, severity=severity)
        with self._lock:
            self._errors.append(report)
        logger.critical("[Safety] %s: %s", "/".join(report.path), error)
        self.bus.publish(Topics.SAFETY_ERROR, report)

    def _enter(self, new_state: ArmState) -> None:
        with self._lock:
            previous = self._state
            self._state = new_state
            registrations = list(self._registrations.values())

        for registration in registrations:
            try:
                registration.hook(registration.opts)
            except Exception:
                logger.exception("[Safety] Disarm hook of %s failed", registration.component_id)

        if previous != new_state:
            self.bus.publish(Topics.STATE_MACHINE, Transition(previous, new_state))
