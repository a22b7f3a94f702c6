from feetech_servo.core import diagnostics
from feetech_servo.core.bus import Topics
from feetech_servo.core.messages import DiagnosticLevel


def test_topic_names():
    assert Topics.joint_state("feetech", "shoulder") == "/sensor/feetech/shoulder"
    assert Topics.servo_status("feetech") == "/sensor/feetech/servo_status"
    assert Topics.actuator("shoulder", "servo") == "/actuator/shoulder/servo"


def test_callbacks_receive_messages_in_order(bus):
    received = []
    bus.subscribe_callback("/t", received.append)

    bus.publish("/t", 1)
    bus.publish("/t", 2)
    bus.publish("/other", 3)

    assert received == [1, 2]


def test_unsubscribe(bus):
    received = []
    bus.subscribe_callback("/t", received.append)
    bus.unsubscribe_callback("/t", received.append)

    bus.publish("/t", 1)

    assert received == []


def test_failing_callback_does_not_block_others(bus):
    received = []

    def broken(_message):
        raise RuntimeError("subscriber bug")

    bus.subscribe_callback("/t", broken)
    bus.subscribe_callback("/t", received.append)

    bus.publish("/t", "hello")

    assert received == ["hello"]


def test_callback_may_publish(bus):
    received = []
    bus.subscribe_callback("/a", lambda m: bus.publish("/b", m * 2))
    bus.subscribe_callback("/b", received.append)

    bus.publish("/a", 21)

    assert received == [42]


def test_diagnostics_are_published(bus, collect):
    reports = collect(Topics.DIAGNOSTICS)

    diagnostics.warn(bus, ("arm", "feetech", 3), "Voltage low", voltage=5.1)
    diagnostics.ok(bus, ("arm",), "Voltage normal")

    assert [d.level for d in reports] == [DiagnosticLevel.WARN, DiagnosticLevel.OK]
    assert reports[0].component == ("arm", "feetech", "3")
    assert reports[0].values == {"voltage": 5.1}
