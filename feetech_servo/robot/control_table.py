"""
Feetech control tables: register addresses, sizes and unit conversions.

Only the register map lives here; the bus protocol is handled by scservo_sdk.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable

from ..core.errors import ConfigurationError

POSITION_RESOLUTION = 4096
RAD_PER_STEP = 2 * math.pi / POSITION_RESOLUTION

LOAD_DIRECTION_BIT = 10
SPEED_DIRECTION_BIT = 15


@dataclass(frozen=True)
class Register:
    name: str
    address: int
    size: int  # bytes, 1 or 2


class ControlTable:
    """Named register map of one servo family."""

    def __init__(self, name: str, registers: Iterable[Register]):
        self.name = name
        self._registers: Dict[str, Register] = {r.name: r for r in registers}

    def __repr__(self) -> str:
        return f"ControlTable({self.name})"

    def register(self, param: str) -> Register:
        try:
            return self._registers[param]
        except KeyError:
            raise KeyError(f"{self.name} has no parameter {param!r}") from None

    def __contains__(self, param: str) -> bool:
        return param in self._registers

    @property
    def params(self):
        return sorted(self._registers)

    def to_units(self, param: str, raw: int) -> Any:
        """Raw register value -> engineering units."""
        if param in ("present_position", "goal_position"):
            return raw * RAD_PER_STEP
        if param in ("present_speed", "goal_speed"):
            return _sign_magnitude(raw, SPEED_DIRECTION_BIT) * RAD_PER_STEP
        if param == "present_voltage":
            return raw / 10.0
        if param == "present_temperature":
            return float(raw)
        if param == "present_load":
            return _sign_magnitude(raw, LOAD_DIRECTION_BIT) / 10.0
        if param in ("torque_enable", "lock"):
            return bool(raw)
        return raw

    def from_units(self, param: str, value: Any) -> int:
        """Engineering units -> raw register value."""
        if param in ("present_position", "goal_position"):
            return int(round(value / RAD_PER_STEP)) % POSITION_RESOLUTION
        if param in ("present_speed", "goal_speed"):
            return _to_sign_magnitude(int(round(value / RAD_PER_STEP)), SPEED_DIRECTION_BIT)
        if param == "present_voltage":
            return int(round(value * 10))
        if param == "present_load":
            return _to_sign_magnitude(int(round(value * 10)), LOAD_DIRECTION_BIT)
        if param in ("torque_enable", "lock"):
            return 1 if value else 0
        return int(value)


def _sign_magnitude(raw: int, direction_bit: int) -> int:
    if raw & (1 << direction_bit):
        return -(raw & ~(1 << direction_bit))
    return raw


def _to_sign_magnitude(value: int, direction_bit: int) -> int:
    if value < 0:
        return (-value) | (1 << direction_bit)
    return value


STS3215 = ControlTable("STS3215", [
    # EEPROM, info
    Register("firmware_version_main", 0, 1),
    Register("firmware_version_sub", 1, 1),
    Register("servo_version_main", 3, 1),
    Register("servo_version_sub", 4, 1),
    # EEPROM, config
    Register("id", 5, 1),
    Register("baud_rate", 6, 1),
    Register("return_delay", 7, 1),
    Register("status_return_level", 8, 1),
    Register("min_angle_limit", 9, 2),
    Register("max_angle_limit", 11, 2),
    Register("max_temperature", 13, 1),
    Register("max_input_voltage", 14, 1),
    Register("min_input_voltage", 15, 1),
    Register("max_torque", 16, 2),
    Register("setting_byte", 18, 1),
    Register("protection_switch", 19, 1),
    Register("led_alarm_condition", 20, 1),
    Register("position_p_gain", 21, 1),
    Register("position_d_gain", 22, 1),
    Register("position_i_gain", 23, 1),
    Register("punch", 24, 2),
    Register("cw_dead_band", 26, 1),
    Register("ccw_dead_band", 27, 1),
    Register("overload_current", 28, 2),
    Register("angular_resolution", 30, 1),
    Register("position_offset", 31, 2),
    Register("mode", 33, 1),
    Register("protection_torque", 34, 1),
    Register("protection_time", 35, 1),
    Register("overload_torque", 36, 1),
    # SRAM, control
    Register("torque_enable", 40, 1),
    Register("acceleration", 41, 1),
    Register("goal_position", 42, 2),
    Register("goal_time", 44, 2),
    Register("goal_speed", 46, 2),
    Register("torque_limit", 48, 2),
    Register("lock", 55, 1),
    # SRAM, status
    Register("present_position", 56, 2),
    Register("present_speed", 58, 2),
    Register("present_load", 60, 2),
    Register("present_voltage", 62, 1),
    Register("present_temperature", 63, 1),
    Register("async_write_status", 64, 1),
    Register("hardware_error_status", 65, 1),
    Register("moving", 66, 1),
    Register("present_current", 69, 2),
])

CONTROL_TABLES: Dict[str, ControlTable] = {
    STS3215.name: STS3215,
}


def get_control_table(name: str) -> ControlTable:
    try:
        return CONTROL_TABLES[name]
    except KeyError:
        known = ", ".join(sorted(CONTROL_TABLES))
        raise ConfigurationError(f"Unknown control table {name!r} (known: {known})") from None
