#!/usr/bin/env python3
"""Balboa TX - a Balboa spa protocol decoder & client.

Construct a command (frame that is to be sent).
"""

from __future__ import annotations

import logging

from . import exceptions as exc
from .const import (
    REQUEST_CAPABILITIES,
    REQUEST_FAULT_LOG,
    REQUEST_FILTER_CYCLES,
    REQUEST_REPLY_MAP,
    REQUEST_SYSTEM_INFO,
    Code,
    LockAction,
    ToggleItem,
)
from .frame import Frame

_LOGGER = logging.getLogger(__name__)


class Command(Frame):
    """The Command class (frames to be transmitted).

    The spa does not acknowledge commands: their effect can only be observed in the
    next status (heartbeat) packet, if at all.
    """

    @property
    def rx_header(self) -> Code | None:
        """Return the code of the expected reply, if any."""

        if self.code == Code.REQUEST:
            return REQUEST_REPLY_MAP.get(self.payload)
        if self.code == Code.CONFIG_REQUEST:
            return Code.CONFIG
        return None

    @classmethod  # used by CLI for -x switch
    def from_cli(cls, cmd_str: str) -> Command:
        """Create a command from a CLI string (the -x switch).

        Examples include (whitespace is optional):
            '0ABF04'
            '0ABF22 000001'
            '0ABF11 0400'
        """

        parts = cmd_str.upper().split()
        if not parts:
            raise exc.CommandInvalid(f"Bad command: empty: >>>{cmd_str}<<<")

        try:
            payload = bytes.fromhex("".join(parts[1:]))
        except ValueError as err:
            raise exc.CommandInvalid(f"Bad command: not hex: >>>{cmd_str}<<<") from err

        return cls.from_attrs(parts[0], payload)  # type: ignore[return-value]

    @classmethod  # constructor for 0ABF04
    def get_config(cls) -> Command:
        """Constructor to request the module identification (c.f. Code.CONFIG)."""
        return cls.from_attrs(Code.CONFIG_REQUEST)  # type: ignore[return-value]

    @classmethod  # constructor for 0ABF22|000001
    def get_capabilities(cls) -> Command:
        """Constructor to request the panel configuration (pumps, lights, etc.)."""
        return cls.from_attrs(Code.REQUEST, REQUEST_CAPABILITIES)  # type: ignore[return-value]

    @classmethod  # constructor for 0ABF22|20FF00
    def get_fault_log(cls) -> Command:
        """Constructor to request the most recent fault log entry."""
        return cls.from_attrs(Code.REQUEST, REQUEST_FAULT_LOG)  # type: ignore[return-value]

    @classmethod  # constructor for 0ABF22|010000
    def get_filter_cycles(cls) -> Command:
        """Constructor to request the filter cycle schedule."""
        return cls.from_attrs(Code.REQUEST, REQUEST_FILTER_CYCLES)  # type: ignore[return-value]

    @classmethod  # constructor for 0ABF22|020000
    def get_system_info(cls) -> Command:
        """Constructor to request the system information (model, version, etc.)."""
        return cls.from_attrs(Code.REQUEST, REQUEST_SYSTEM_INFO)  # type: ignore[return-value]

    @classmethod  # constructor for 0ABF11
    def toggle_item(cls, item: ToggleItem | int) -> Command:
        """Constructor to advance an item (pump, light, etc.) to its next state."""

        if not 0 <= item <= 0xFF:
            raise exc.CommandInvalid(f"Toggle item must be a single byte, not {item}")

        return cls.from_attrs(Code.TOGGLE_ITEM, bytes((item, 0x00)))  # type: ignore[return-value]

    @classmethod  # constructor for 0ABF20
    def set_target_temp(cls, temp: int) -> Command:
        """Constructor to set the target temperature (in device units).

        Device units are half-degrees for Celsius, and whole degrees for Fahrenheit.
        """

        if not 0 <= temp < 0xFF:  # 0xFF means: unknown
            raise exc.CommandInvalid(f"Target temperature is out of range: {temp}")

        return cls.from_attrs(Code.SET_TEMP, bytes((temp,)))  # type: ignore[return-value]

    @classmethod  # constructor for 0ABF21
    def set_time(cls, hour: int, minute: int, is_24h: bool = False) -> Command:
        """Constructor to set the time of day (and the 12/24h display mode)."""

        if not 0 <= hour <= 23 or not 0 <= minute <= 59:
            raise exc.CommandInvalid(f"Time is invalid: {hour:02d}:{minute:02d}")

        return cls.from_attrs(  # type: ignore[return-value]
            Code.SET_TIME, bytes(((0x80 if is_24h else 0x00) | hour, minute))
        )

    @classmethod  # constructor for 0ABF2D
    def set_lock(cls, action: LockAction) -> Command:
        """Constructor to lock/unlock the settings, or the entire panel."""
        return cls.from_attrs(Code.LOCK, bytes((LockAction(action),)))  # type: ignore[return-value]
