#!/usr/bin/env python3
"""Balboa spa - the device state model.

Every accessory (pump, light, blower, mister, aux) has an existence tag, as well as a
value: it is Unknown until the capabilities are known, then Absent or Present(range).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Final, TypeAlias

from .const import (
    HEATING_MODES,
    MAX_BLOWER_RANGE,
    MAX_PUMP_RANGE,
    NUM_AUX,
    NUM_LIGHTS,
    NUM_PUMPS,
    FlowState,
    TempUnit,
)

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Unknown:
    """The capabilities are not (yet) known."""

    def __str__(self) -> str:
        return "unknown"


@dataclass(frozen=True)
class Absent:
    """The capabilities are known, and the component does not exist."""

    def __str__(self) -> str:
        return "absent"


@dataclass(frozen=True)
class Present:
    """The component exists, with this many discrete 'on' states."""

    range: int = 1

    def __str__(self) -> str:
        return f"present (range={self.range})"


ExistenceT: TypeAlias = Unknown | Absent | Present

UNKNOWN: Final = Unknown()
ABSENT: Final = Absent()


def range_of(existence: ExistenceT, max_range: int) -> int:
    """Return the number of 'on' states of a component (the maximum, if Unknown)."""

    if isinstance(existence, Present):
        return existence.range
    if isinstance(existence, Absent):
        return 0
    return max_range


@dataclass
class SpaState:
    """The live snapshot of the spa (temperatures are in device units)."""

    current_temp: int | None = None
    target_temp_high: int | None = None  # of the high temperature range
    target_temp_low: int | None = None  # of the low temperature range
    temp_unit: TempUnit = TempUnit.FAHRENHEIT

    hour: int = 0
    minute: int = 0
    is_24h: bool = False

    heating_mode: str | None = None  # one of HEATING_MODES
    is_heating_now: bool = False
    is_priming: bool = False
    is_hold: bool = False
    circulation_pump: bool = False
    settings_locked: bool = False
    panel_locked: bool = False
    filter_cycle: int = 0  # 0..3
    temp_range_is_high: bool = False

    pump_speeds: list[int] = field(default_factory=lambda: [0] * NUM_PUMPS)
    lights_on: list[bool] = field(default_factory=lambda: [False] * NUM_LIGHTS)
    blower_speed: int = 0
    mister_on: bool = False
    aux_on: list[bool] = field(default_factory=lambda: [False] * NUM_AUX)

    flow: FlowState = FlowState.GOOD

    pumps: list[ExistenceT] = field(default_factory=lambda: [UNKNOWN] * NUM_PUMPS)
    lights: list[ExistenceT] = field(default_factory=lambda: [UNKNOWN] * NUM_LIGHTS)
    blower: ExistenceT = UNKNOWN
    mister: ExistenceT = UNKNOWN
    aux: list[ExistenceT] = field(default_factory=lambda: [UNKNOWN] * NUM_AUX)
    has_circulation_pump: ExistenceT = UNKNOWN

    accurate_config_known: bool = False

    @property
    def target_temp(self) -> int | None:
        """Return the target temperature of the active range."""
        return self.target_temp_high if self.temp_range_is_high else self.target_temp_low

    @target_temp.setter
    def target_temp(self, value: int | None) -> None:
        if self.temp_range_is_high:
            self.target_temp_high = value
        else:
            self.target_temp_low = value

    @property
    def is_heating_mode_always_ready(self) -> bool:
        return self.heating_mode == HEATING_MODES[0]

    def set_all_present(self) -> None:
        """Treat every component as present, with its maximum range."""

        self.pumps = [Present(MAX_PUMP_RANGE)] * NUM_PUMPS
        self.lights = [Present()] * NUM_LIGHTS
        self.blower = Present(MAX_BLOWER_RANGE)
        self.mister = Present()
        self.aux = [Present()] * NUM_AUX
        self.has_circulation_pump = Present()
