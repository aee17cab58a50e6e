#!/usr/bin/env python3
"""Balboa spa - a Balboa spa protocol decoder & client."""

from __future__ import annotations

from enum import EnumCheck, StrEnum, verify
from typing import Final

from balboa_tx.const import (  # noqa: F401
    AUX_ITEMS as AUX_ITEMS,
    LIGHT_ITEMS as LIGHT_ITEMS,
    PUMP_ITEMS as PUMP_ITEMS,
    UNKNOWN_TEMP as UNKNOWN_TEMP,
    Code as Code,
    LockAction as LockAction,
    ToggleItem as ToggleItem,
)

__dev_mode__ = False  # NOTE: this is const.py
DEV_MODE = __dev_mode__

NUM_PUMPS: Final[int] = len(PUMP_ITEMS)  # 6
NUM_LIGHTS: Final[int] = len(LIGHT_ITEMS)  # 2
NUM_AUX: Final[int] = len(AUX_ITEMS)  # 2

MAX_PUMP_RANGE: Final[int] = 2  # off, low, high
MAX_BLOWER_RANGE: Final[int] = 3  # off, low, medium, high

DEFAULT_CONFIRM_DELAY: Final[float] = 0.5
DEFAULT_NOTIFY_DELAY: Final[float] = 0.25
DEFAULT_FAULT_INITIAL_DELAY: Final[float] = 5.0
DEFAULT_FAULT_POLL_INTERVAL: Final[float] = 600.0


@verify(EnumCheck.UNIQUE)
class FlowState(StrEnum):
    """The health of the water flow, as derived from the fault log."""

    GOOD = "good"
    LOW = "low"
    FAILED = "failed"


@verify(EnumCheck.UNIQUE)
class TempUnit(StrEnum):
    CELSIUS = "C"
    FAHRENHEIT = "F"


HEATING_MODES: Final[tuple[str, ...]] = ("Ready", "Rest", "Ready in Rest")

PUMP_SPEEDS: Final[tuple[str, ...]] = ("Off", "Low", "High")
BLOWER_SPEEDS: Final[tuple[str, ...]] = ("Off", "Low", "Medium", "High")

# (min, max) of the target temperature, by unit, then range (high is True)
TEMP_LIMITS: Final[dict[TempUnit, dict[bool, tuple[float, float]]]] = {
    TempUnit.CELSIUS: {True: (26.5, 40.0), False: (10.0, 36.0)},
    TempUnit.FAHRENHEIT: {True: (80, 104), False: (50, 99)},
}

FAULT_CODE_LOW_FLOW: Final[int] = 16
FAULT_CODE_FLOW_FAILED: Final[int] = 17

FAULT_MESSAGES: Final[dict[int, str]] = {
    15: "Sensors are out of sync",
    16: "The water flow is low",
    17: "The water flow has failed",
    18: "The settings have been reset",
    19: "Priming mode",
    20: "The clock has failed",
    21: "The settings have been reset",
    22: "Program memory failure",
    26: "Sensors are out of sync -- call for service",
    27: "The heater is dry",
    28: "The heater may be dry",
    29: "The water is too hot",
    30: "The heater is too hot",
    31: "Sensor A fault",
    32: "Sensor B fault",
    34: "A pump may be stuck on",
    35: "Hot fault",
    36: "The GFCI test failed",
    37: "Standby mode (hold mode)",
}

# state/diagnostics keys
SZ_CODE: Final = "code"
SZ_COUNT: Final = "count"
SZ_DAYS_AGO: Final = "days_ago"
SZ_DURATION: Final = "duration"
SZ_ENABLED: Final = "enabled"
SZ_ENTRY_NUM: Final = "entry_num"
SZ_FILTER_CYCLES: Final = "filter_cycles"
SZ_HEAT_MODE: Final = "heat_mode"
SZ_HEATER_TYPE: Final = "heater_type"
SZ_IDIGI_DEVICE_ID: Final = "idigi_device_id"
SZ_MAC_ADDRESS: Final = "mac_address"
SZ_MESSAGE: Final = "message"
SZ_MODEL: Final = "model"
SZ_SENSOR_A_TEMP: Final = "sensor_a_temp"
SZ_SENSOR_B_TEMP: Final = "sensor_b_temp"
SZ_SET_TEMP: Final = "set_temp"
SZ_SOFTWARE_VERSION: Final = "software_version"
SZ_START: Final = "start"
SZ_TIME: Final = "time"
