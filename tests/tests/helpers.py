#!/usr/bin/env python3
"""Balboa spa - helpers for testing (no spa is required)."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime as dt
from typing import Any, Final

from balboa_tx import Code, Command, Frame, Packet

LOCALHOST: Final = "127.0.0.1"

DEFAULT_MAX_SLEEP: Final[float] = 1.0

# the capabilities of a typical spa: pumps 1 & 2 (2-speed), pump 3 (1-speed),
# light 1, a circulation pump, and nothing else
CAPABILITIES_PAYLOAD: Final = bytes.fromhex("1A0001900000")

_LOGGER = logging.getLogger(__name__)


def make_frame(code: Code | str, payload: bytes = b"") -> Frame:
    return Frame.from_attrs(code, payload)


def make_packet(code: Code | str, payload: bytes = b"") -> Packet:
    return Packet(dt.now(), bytes(make_frame(code, payload)))


def status_payload(
    *,
    hold: bool = False,
    priming: bool = False,
    current_temp: int = 100,
    hour: int = 12,
    minute: int = 30,
    heating_mode: int = 0,
    flags_9: int = 0x00,  # bit 0: Celsius, bit 1: 24h, bits 4/5: locks
    flags_10: int = 0x00,  # bit 2: high range, bits 4-5: heating
    pumps: int = 0x0000,  # 2 bits per pump
    byte_13: int = 0x00,  # circulation pump, blower
    lights: int = 0x00,
    byte_15: int = 0x00,  # mister, aux
    target_temp: int = 102,
    length: int = 24,
) -> bytes:
    """Return a status (FFAF13) payload."""

    payload = bytearray(length)

    payload[0] = 0x05 if hold else 0x00
    payload[1] = 0x01 if priming else 0x00
    payload[2] = current_temp
    payload[3] = hour
    payload[4] = minute
    payload[5] = heating_mode
    payload[9] = flags_9
    payload[10] = flags_10
    payload[11] = pumps & 0xFF
    payload[12] = pumps >> 8
    payload[13] = byte_13
    payload[14] = lights
    payload[15] = byte_15
    payload[20] = target_temp

    return bytes(payload)


def fault_payload(
    *, code: int = 16, days_ago: int = 0, hour: int = 9, minute: int = 15
) -> bytes:
    """Return a fault log (0ABF28) payload."""
    return bytes((3, 2, code, days_ago, hour, minute, 0x00, 100, 99, 99))


class CommandRecorder:
    """A send function that records the commands it is given."""

    def __init__(self) -> None:
        self.cmds: list[Command] = []

    async def __call__(self, cmd: Command) -> None:
        self.cmds.append(cmd)

    @property
    def toggles(self) -> list[int]:
        """Return the item codes of all the toggle commands, in order."""
        return [c.payload[0] for c in self.cmds if c.code == Code.TOGGLE_ITEM]


async def assert_this(
    predicate: Callable[[], Any], max_sleep: float = DEFAULT_MAX_SLEEP
) -> None:
    """Wait until the predicate is true (or fail)."""

    for _ in range(int(max_sleep / 0.005)):
        if predicate():
            return
        await asyncio.sleep(0.005)
    assert predicate()
