"""
Metadata for the control table parameters the bridge exposes.

Categories:
- info: read-only identification (firmware / servo versions)
- config: EEPROM settings, torque must be off to write them
- control: SRAM settings, writable at runtime

Status registers (present_*, moving, ...) are published as sensor
messages and are not bridged.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..robot.control_table import ControlTable


class ParamCategory(Enum):
    INFO = "info"
    CONFIG = "config"
    CONTROL = "control"


@dataclass(frozen=True)
class ParamInfo:
    category: ParamCategory
    writable: bool
    requires_torque_off: bool
    doc: str


INFO_PARAMS = {
    "firmware_version_main": "Firmware major version",
    "firmware_version_sub": "Firmware minor version",
    "servo_version_main": "Servo hardware major version",
    "servo_version_sub": "Servo hardware minor version",
}

CONFIG_PARAMS = {
    "id": "Servo ID (1-253)",
    "baud_rate": "Communication baud rate",
    "return_delay": "Response delay time",
    "status_return_level": "Status packet return level",
    "min_angle_limit": "Minimum angle limit",
    "max_angle_limit": "Maximum angle limit",
    "max_temperature": "Maximum temperature limit",
    "max_input_voltage": "Maximum input voltage limit",
    "min_input_voltage": "Minimum input voltage limit",
    "max_torque": "Maximum torque limit",
    "setting_byte": "Settings configuration byte",
    "protection_switch": "Protection switch flags",
    "led_alarm_condition": "LED alarm trigger conditions",
    "position_p_gain": "Position PID P gain",
    "position_d_gain": "Position PID D gain",
    "position_i_gain": "Position PID I gain",
    "punch": "Minimum PWM threshold",
    "cw_dead_band": "Clockwise dead band",
    "ccw_dead_band": "Counter-clockwise dead band",
    "overload_current": "Overload current threshold",
    "angular_resolution": "Angular resolution setting",
    "position_offset": "Position offset from home",
    "mode": "Operating mode (position/velocity/step)",
    "protection_torque": "Protection torque threshold",
    "protection_time": "Protection time duration",
    "overload_torque": "Overload torque threshold",
}

CONTROL_PARAMS = {
    "torque_enable": "Enable/disable torque",
    "acceleration": "Movement acceleration",
    "goal_position": "Goal position",
    "goal_time": "Time to reach goal",
    "goal_speed": "Goal speed",
    "torque_limit": "Torque limit",
    "lock": "Lock EEPROM writes",
}

STATUS_PARAMS = frozenset({
    "present_position",
    "present_speed",
    "present_load",
    "present_voltage",
    "present_temperature",
    "async_write_status",
    "hardware_error_status",
    "moving",
    "present_current",
})


def list_params(control_table: Optional[ControlTable] = None) -> List[str]:
    """All bridged parameter names, sorted. Status parameters are excluded."""
    names = set(INFO_PARAMS) | set(CONFIG_PARAMS) | set(CONTROL_PARAMS)
    if control_table is not None:
        names = {name for name in names if name in control_table}
    return sorted(names)


def param_info(param_name: str) -> Optional[ParamInfo]:
    if param_name in INFO_PARAMS:
        return ParamInfo(ParamCategory.INFO, False, False, INFO_PARAMS[param_name])
    if param_name in CONFIG_PARAMS:
        return ParamInfo(ParamCategory.CONFIG, True, True, CONFIG_PARAMS[param_name])
    if param_name in CONTROL_PARAMS:
        return ParamInfo(ParamCategory.CONTROL, True, False, CONTROL_PARAMS[param_name])
    return None


def is_writable(param_name: str) -> bool:
    info = param_info(param_name)
    return info is not None and info.writable


def requires_torque_off(param_name: str) -> bool:
    info = param_info(param_name)
    return info is not None and info.requires_torque_off


def is_status_param(param_name: str) -> bool:
    return param_name in STATUS_PARAMS
