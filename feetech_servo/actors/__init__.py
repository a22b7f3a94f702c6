"""Actor implementations for the servo bus."""

from .controller_actor import ControllerActor
from .servo_actuator_actor import ServoActuatorActor

__all__ = [
    "ControllerActor",
    "ServoActuatorActor",
]
