"""
Main orchestrator for a Feetech servo bus.

Wires the safety controller, the bus controller and one actuator per
configured servo, then idles until interrupted.
"""

import argparse
import logging
import time
from typing import List, Optional

from .core.bus import MessageBus, Topics
from .core.config import Config, load_config
from .core.messages import SafetyError
from .core.safety import SafetyController
from .actors.controller_actor import ControllerActor
from .actors.servo_actuator_actor import ServoActuatorActor
from .robot.bus_driver import BusDriver
from .robot.model import RobotModel

logger = logging.getLogger(__name__)


class ServoBusApp:
    """
    Owns every actor on one bus.

    Responsibilities:
    - Build the robot model from config
    - Start the controller before the actuators that depend on it
    - Latch the safety error state when an actor dies
    - Disarm and stop everything on shutdown
    """

    def __init__(self, config: Config, driver: Optional[BusDriver] = None):
        self.config = config
        self.bus = MessageBus()
        self.safety = SafetyController(self.bus, config.robot.name)
        self.model = RobotModel.from_config(config.robot)

        self.controller = ControllerActor(self.bus, config.controller, self.safety, driver=driver)
        self.actuators: List[ServoActuatorActor] = [
            ServoActuatorActor(self.bus, actuator, self.controller, self.safety, self.model)
            for actuator in config.actuators
        ]
        for actor in [self.controller, *self.actuators]:
            actor.on_crash = self.safety.crash
        self._running = False

    def setup(self) -> None:
        """
        Start all actors.

        Raises:
            DriverStartError: the bus could not be opened
            JointConfigError: an actuator's joint cannot be driven
        """
        logger.info("[App] Setting up %s", self.config.robot.name)
        self.bus.subscribe_callback(Topics.SAFETY_ERROR, self._on_safety_error)

        self.controller.start()
        started = []
        try:
            for actuator in self.actuators:
                actuator.start()
                started.append(actuator)
        except Exception:
            # Servos registered so far may still hold torque
            self.safety.disarm()
            for actuator in started:
                actuator.stop()
            self.controller.stop()
            raise

        logger.info("[App] %d actuator(s) ready", len(self.actuators))

    def arm(self) -> bool:
        return self.safety.arm()

    def run(self) -> None:
        self._running = True
        logger.info("[App] Running, Ctrl-C to stop")
        try:
            while self._running:
                time.sleep(0.1)
        except KeyboardInterrupt:
            logger.info("[App] Interrupted")
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Disarm first so torque is off before the bus closes."""
        self._running = False
        self.safety.disarm()

        for actuator in self.actuators:
            actuator.stop()
        self.controller.stop()
        logger.info("[App] Shutdown complete")

    def _on_safety_error(self, report: SafetyError) -> None:
        if report.severity == "critical":
            logger.error("[App] Critical error at %s, disarming", "/".join(report.path))
            self.safety.disarm()


def main():
    parser = argparse.ArgumentParser(description="Feetech serial bus servo controller")
    parser.add_argument("--config", type=str, help="Path to config file")
    parser.add_argument("--port", type=str, help="Serial port (overrides config)")
    parser.add_argument("--arm", action="store_true", help="Arm the robot once all actors are up")
    parser.add_argument("--log-level", type=str, default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    config = load_config(args.config)
    if args.port:
        config.controller.port = args.port

    app = ServoBusApp(config)
    app.setup()
    if args.arm:
        app.arm()
    app.run()


if __name__ == "__main__":
    main()
