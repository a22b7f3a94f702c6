"""ServoBusApp wiring with the fake driver, and the command line entry point."""

import math
import sys

import pytest

from feetech_servo import main as main_module
from feetech_servo.core.bus import Topics
from feetech_servo.core.config import ActuatorConfig, Config
from feetech_servo.core.errors import DriverStartError, HardwareAlert, JointConfigError
from feetech_servo.core.messages import ArmState, ListServos, PositionCommand, WriteRaw
from feetech_servo.main import ServoBusApp

from conftest import FakeDriver, wait_until


@pytest.fixture
def config(controller_config, robot_config):
    return Config(
        controller=controller_config,
        actuators=[
            ActuatorConfig(joint="shoulder", servo_id=1),
            ActuatorConfig(joint="elbow", servo_id=2, reverse=True),
        ],
        robot=robot_config,
    )


@pytest.fixture
def driver():
    d = FakeDriver()
    d.values["present_position"] = {1: math.pi, 2: math.pi}
    return d


@pytest.fixture
def app(config, driver):
    a = ServoBusApp(config, driver=driver)
    a.setup()
    yield a
    a.shutdown()


def test_setup_registers_every_servo(app, driver):
    assert app.controller.call(ListServos()) == [1, 2]
    assert app.safety.registration("feetech").opts.servo_ids == (1, 2)
    # Each actuator limps its servo before registering it
    assert ("write", 1, "torque_enable", False, True) in driver.calls
    assert ("write", 2, "torque_enable", False, True) in driver.calls


def test_arm_and_command(app, driver):
    assert app.arm()
    assert wait_until(lambda: ("bulk_write_raw", "lock", ((1, 1), (2, 1))) in driver.calls)

    app.bus.publish(Topics.actuator("elbow", "servo"), PositionCommand(0.5))

    # Reversed elbow: 2048 - 0.5 rad
    expected = 2048 - round(0.5 * 4096 / (2 * math.pi))
    assert wait_until(lambda: ("write_raw", 2, "goal_position", expected, False) in driver.calls)


def test_shutdown_disables_torque_and_closes_bus(config, driver):
    app = ServoBusApp(config, driver=driver)
    app.setup()
    app.arm()

    app.shutdown()

    assert app.safety.state == ArmState.DISARMED
    assert ("bulk_write", "torque_enable", ((1, False), (2, False))) in driver.calls
    assert driver.calls[-1] == ("stop",)
    assert not app.controller.is_running()


def test_critical_error_disarms(app, driver):
    app.arm()
    app.safety.report_error(("feetech", "shoulder"), HardwareAlert.from_bits(1, 0x04))
    assert app.safety.state == ArmState.DISARMED


def test_driver_failure_aborts_setup(config):
    driver = FakeDriver()
    driver.start_error = DriverStartError("port busy")
    app = ServoBusApp(config, driver=driver)

    with pytest.raises(DriverStartError):
        app.setup()


def test_bad_joint_stops_everything(config, driver):
    config.actuators.append(ActuatorConfig(joint="wheel", servo_id=3))
    app = ServoBusApp(config, driver=driver)

    with pytest.raises(JointConfigError):
        app.setup()

    # Shoulder and elbow were registered before the wheel failed
    assert ("bulk_write", "torque_enable", ((1, False), (2, False))) in driver.calls
    assert not app.controller.is_running()
    assert not any(a.is_running() for a in app.actuators)
    assert not driver.alive


class BusFault(BaseException):
    pass


def test_controller_crash_latches_error(app, driver):
    app.arm()

    def fault(*args, **kwargs):
        raise BusFault("serial adapter reset")

    driver.write_raw = fault
    app.controller.cast(WriteRaw(1, "goal_position", 2048))

    assert wait_until(lambda: ("bulk_write", "torque_enable", ((1, False), (2, False))) in driver.calls)
    assert app.safety.state == ArmState.ERROR
    assert not app.controller.is_running()
    assert not app.arm()


class RecordingApp:
    instances = []

    def __init__(self, config):
        self.config = config
        self.calls = []
        RecordingApp.instances.append(self)

    def setup(self):
        self.calls.append("setup")

    def arm(self):
        self.calls.append("arm")

    def run(self):
        self.calls.append("run")


def test_main_entry_point(tmp_path, monkeypatch):
    path = tmp_path / "robot.yaml"
    path.write_text("controller:\n  port: /dev/ttyUSB0\nrobot:\n  name: arm\n")
    RecordingApp.instances.clear()
    monkeypatch.setattr(main_module, "ServoBusApp", RecordingApp)
    monkeypatch.setattr(sys, "argv", ["feetech-servo", "--config", str(path), "--port", "/dev/ttyACM1", "--arm"])

    main_module.main()

    (app,) = RecordingApp.instances
    assert app.config.controller.port == "/dev/ttyACM1"
    assert app.config.robot.name == "arm"
    assert app.calls == ["setup", "arm", "run"]
