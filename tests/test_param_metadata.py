import pytest

from feetech_servo.bridge import param_metadata
from feetech_servo.bridge.param_metadata import ParamCategory
from feetech_servo.robot.control_table import STS3215, ControlTable, Register


def test_every_bridged_param_exists_in_the_control_table():
    for name in param_metadata.list_params():
        assert name in STS3215, name


def test_list_is_sorted_and_excludes_status():
    params = param_metadata.list_params()
    assert params == sorted(params)
    assert len(params) == 37
    assert not set(params) & param_metadata.STATUS_PARAMS


def test_list_filters_by_control_table():
    table = ControlTable("tiny", [Register("id", 5, 1), Register("lock", 55, 1), Register("present_position", 56, 2)])
    assert param_metadata.list_params(table) == ["id", "lock"]


@pytest.mark.parametrize("name,category,writable,torque_off", [
    ("firmware_version_main", ParamCategory.INFO, False, False),
    ("position_p_gain", ParamCategory.CONFIG, True, True),
    ("max_temperature", ParamCategory.CONFIG, True, True),
    ("acceleration", ParamCategory.CONTROL, True, False),
    ("lock", ParamCategory.CONTROL, True, False),
])
def test_param_info(name, category, writable, torque_off):
    info = param_metadata.param_info(name)
    assert info.category == category
    assert info.writable is writable
    assert info.requires_torque_off is torque_off
    assert info.doc
    assert param_metadata.is_writable(name) is writable
    assert param_metadata.requires_torque_off(name) is torque_off


def test_status_and_unknown_params_have_no_info():
    assert param_metadata.param_info("present_temperature") is None
    assert param_metadata.param_info("colour") is None
    assert not param_metadata.is_writable("present_position")
    assert not param_metadata.requires_torque_off("colour")


def test_status_params():
    assert param_metadata.is_status_param("present_load")
    assert param_metadata.is_status_param("hardware_error_status")
    assert not param_metadata.is_status_param("goal_position")
