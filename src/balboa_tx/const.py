#!/usr/bin/env python3
"""Balboa TX - a Balboa spa protocol decoder & client."""

from __future__ import annotations

from enum import EnumCheck, IntEnum, StrEnum, verify
from typing import Final

__dev_mode__ = False  # NOTE: this is const.py
DEV_MODE = __dev_mode__

DEFAULT_PORT: Final[int] = 4257  # the Wi-Fi module listens here (no TLS)
DEFAULT_CONNECT_TIMEOUT: Final[float] = 10.0
DEFAULT_RECONNECT_DELAY: Final[float] = 20.0  # backoff after an error/EOF

FRAME_SENTINEL: Final[int] = 0x7E  # at both ends of every frame
FRAME_OVERHEAD: Final[int] = 5  # len + code (3) + checksum, excl. sentinels
MAX_FRAME_LENGTH: Final[int] = 0xFF  # the length field is a single byte

CRC_POLY: Final[int] = 0x07
CRC_INIT: Final[int] = 0x02
CRC_XOR_OUT: Final[int] = 0x02

UNKNOWN_TEMP: Final[int] = 0xFF  # a temperature byte of 255 means: unknown


@verify(EnumCheck.UNIQUE)
class Code(StrEnum):
    """The 3-byte message type codes (as hex strings)."""

    STATUS = "FFAF13"  # unsolicited, ~1 Hz
    PREFERENCES = "FFAF26"
    REQUEST = "0ABF22"  # the payload determines the reply
    FAULT_LOG = "0ABF28"
    CAPABILITIES = "0ABF2E"  # aka panel/device configuration
    FILTER_CYCLES = "0ABF23"
    SYSTEM_INFO = "0ABF24"
    CONFIG_REQUEST = "0ABF04"
    CONFIG = "0ABF94"  # aka module identification
    TOGGLE_ITEM = "0ABF11"
    SET_TEMP = "0ABF20"
    SET_TIME = "0ABF21"
    LOCK = "0ABF2D"


# payloads of Code.REQUEST, and the code of the reply to each
REQUEST_CAPABILITIES: Final[bytes] = bytes((0x00, 0x00, 0x01))
REQUEST_FAULT_LOG: Final[bytes] = bytes((0x20, 0xFF, 0x00))
REQUEST_FILTER_CYCLES: Final[bytes] = bytes((0x01, 0x00, 0x00))
REQUEST_SYSTEM_INFO: Final[bytes] = bytes((0x02, 0x00, 0x00))

REQUEST_REPLY_MAP: Final[dict[bytes, Code]] = {
    REQUEST_CAPABILITIES: Code.CAPABILITIES,
    REQUEST_FAULT_LOG: Code.FAULT_LOG,
    REQUEST_FILTER_CYCLES: Code.FILTER_CYCLES,
    REQUEST_SYSTEM_INFO: Code.SYSTEM_INFO,
}


@verify(EnumCheck.UNIQUE)
class ToggleItem(IntEnum):
    """The item codes of a TOGGLE_ITEM command."""

    PUMP_1 = 0x04
    PUMP_2 = 0x05
    PUMP_3 = 0x06
    PUMP_4 = 0x07
    PUMP_5 = 0x08
    PUMP_6 = 0x09
    BLOWER = 0x0C
    MISTER = 0x0E
    LIGHT_1 = 0x11
    LIGHT_2 = 0x12
    AUX_1 = 0x16
    AUX_2 = 0x17
    HOLD = 0x3C
    TEMP_RANGE = 0x50
    HEATING_MODE = 0x51


PUMP_ITEMS: Final[tuple[ToggleItem, ...]] = (
    ToggleItem.PUMP_1,
    ToggleItem.PUMP_2,
    ToggleItem.PUMP_3,
    ToggleItem.PUMP_4,
    ToggleItem.PUMP_5,
    ToggleItem.PUMP_6,
)
LIGHT_ITEMS: Final[tuple[ToggleItem, ...]] = (ToggleItem.LIGHT_1, ToggleItem.LIGHT_2)
AUX_ITEMS: Final[tuple[ToggleItem, ...]] = (ToggleItem.AUX_1, ToggleItem.AUX_2)


@verify(EnumCheck.UNIQUE)
class LockAction(IntEnum):
    """The payload of a LOCK command."""

    LOCK_SETTINGS = 0x01
    LOCK_PANEL = 0x02
    UNLOCK_SETTINGS = 0x03
    UNLOCK_PANEL = 0x04
