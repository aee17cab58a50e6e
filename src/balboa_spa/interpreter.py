#!/usr/bin/env python3
"""Balboa spa - decode packets and update the state model.

Each handler returns an Interpretation: the decoded result, and whether the state has
changed in a way worth telling the client about (the client decides how).
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Final, NamedTuple

from balboa_tx import Packet
from balboa_tx.exceptions import PacketPayloadInvalid

from .capabilities import Capabilities
from .const import (
    HEATING_MODES,
    MAX_PUMP_RANGE,
    NUM_PUMPS,
    SZ_DURATION,
    SZ_ENABLED,
    SZ_FILTER_CYCLES,
    SZ_HEATER_TYPE,
    SZ_IDIGI_DEVICE_ID,
    SZ_MAC_ADDRESS,
    SZ_MODEL,
    SZ_SOFTWARE_VERSION,
    SZ_START,
    UNKNOWN_TEMP,
    Code,
    TempUnit,
)
from .faultlog import FaultLog
from .state import Absent, ExistenceT, SpaState

#
# NOTE: All debug flags should be False for deployment to end-users
_DBG_LOG_ALL_STATUS: Final[bool] = False  # log every status, not only changes

_LOGGER = logging.getLogger(__name__)


STATUS_MIN_LENGTH: Final[int] = 21  # the target temp is at offset 20
STATUS_VOLATILE_OFFSETS: Final[frozenset[int]] = frozenset((3, 4))  # hour, minute

SPA_STATE_HOLD: Final[int] = 0x05


class BitField(NamedTuple):
    """The location of a value within the status payload."""

    offset: int
    mask: int

    def extract(self, payload: bytes) -> int:
        """Return the (shifted) value of the field."""

        shift = (self.mask & -self.mask).bit_length() - 1  # of the lowest set bit
        return (payload[self.offset] & self.mask) >> shift


@dataclass(frozen=True)
class StatusBitMap:
    """The less certain bit positions of the status payload (are overridable)."""

    circulation_pump: BitField = BitField(13, 0x02)
    blower: BitField = BitField(13, 0x0C)
    mister: BitField = BitField(15, 0x01)
    aux_1: BitField = BitField(15, 0x08)
    aux_2: BitField = BitField(15, 0x10)

    @classmethod
    def from_config(cls, status_bits: dict[str, Any] | None) -> StatusBitMap:
        """Create a bit map, overriding the default positions as configured."""

        if not status_bits:
            return cls()
        return dataclasses.replace(
            cls(), **{k: BitField(*v) for k, v in status_bits.items()}
        )


@dataclass(frozen=True)
class Interpretation:
    """The outcome of decoding a packet."""

    code: Code | str
    changed: bool
    result: Any = None


def _temp_or_none(value: int) -> int | None:
    return None if value == UNKNOWN_TEMP else value


def _not_absent(existence: ExistenceT) -> bool:
    return not isinstance(existence, Absent)


def decode_filter_cycles(payload: bytes) -> dict[str, Any]:
    """Decode the filter cycles (schedule) payload.

    Byte  | Data
    ---------------------------
    00    | filter cycle 1 start hour
    01    | filter cycle 1 start minute
    02    | filter cycle 1 duration hours
    03    | filter cycle 1 duration minutes
    04    | filter cycle 2 enabled (bit 7) and start hour
    05    | filter cycle 2 start minute
    06    | filter cycle 2 duration hours
    07    | filter cycle 2 duration minutes
    """

    if len(payload) < 8:
        raise PacketPayloadInvalid(f"Filter cycles payload too short: {payload.hex()}")

    return {
        SZ_FILTER_CYCLES: [
            {
                SZ_ENABLED: True,
                SZ_START: f"{payload[0]:02d}:{payload[1]:02d}",
                SZ_DURATION: timedelta(hours=payload[2], minutes=payload[3]),
            },
            {
                SZ_ENABLED: bool(payload[4] & 0x80),
                SZ_START: f"{payload[4] & 0x7F:02d}:{payload[5]:02d}",
                SZ_DURATION: timedelta(hours=payload[6], minutes=payload[7]),
            },
        ]
    }


def decode_config(payload: bytes) -> dict[str, Any]:
    """Decode the module identification (config) payload.

    Byte  | Data
    ---------------------------
    00-02 | ? ? ?
    03-08 | mac address
    09-24 | iDigi device id
    """

    if len(payload) < 9:
        raise PacketPayloadInvalid(f"Config payload too short: {payload.hex()}")

    return {
        SZ_MAC_ADDRESS: ":".join(f"{x:02x}" for x in payload[3:9]),
        SZ_IDIGI_DEVICE_ID: "-".join(
            payload[i : i + 4].hex() for i in range(9, len(payload) - 3, 4)
        ).upper(),
    }


def decode_system_info(payload: bytes) -> dict[str, Any]:
    """Decode the system information payload.

    Byte  | Data
    ---------------------------
    00-03 | software id and version
    04-11 | model name
    ...   | setup, signature, voltage, heater type, dip switches
    """

    if len(payload) < 12:
        raise PacketPayloadInvalid(f"System info payload too short: {payload.hex()}")

    result: dict[str, Any] = {
        SZ_SOFTWARE_VERSION: f"M{payload[0]}_{payload[1]} V{payload[2]}.{payload[3]}",
        SZ_MODEL: payload[4:12].decode("ascii", errors="replace").strip(),
    }
    if len(payload) > 18:
        result[SZ_HEATER_TYPE] = "standard" if payload[18] == 0x0A else "unknown"
    return result


def decode_preferences(payload: bytes) -> dict[str, Any]:
    """Decode the (panel) preferences payload (best-effort)."""

    if len(payload) < 5:
        raise PacketPayloadInvalid(f"Preferences payload too short: {payload.hex()}")

    return {
        "reminders": bool(payload[1]),
        "temp_unit": TempUnit.CELSIUS if payload[3] else TempUnit.FAHRENHEIT,
        "is_24h": bool(payload[4]),
    }


class Interpreter:
    """Decode packets, by code, and apply them to a state model."""

    def __init__(
        self,
        state: SpaState,
        /,
        *,
        bit_map: StatusBitMap | None = None,
        ignore_capabilities: bool = False,
    ) -> None:
        self._state = state
        self._bits = bit_map or StatusBitMap()
        self._bypass = ignore_capabilities

        self._last_status: bytes | None = None
        self.fault_log = FaultLog()

        self._handlers: dict[Code | str, Callable[[bytes], Interpretation]] = {
            Code.STATUS: self._status,
            Code.FAULT_LOG: self._fault_log,
            Code.CAPABILITIES: self._capabilities,
            Code.CONFIG: self._diagnostic(Code.CONFIG, decode_config),
            Code.FILTER_CYCLES: self._diagnostic(
                Code.FILTER_CYCLES, decode_filter_cycles
            ),
            Code.SYSTEM_INFO: self._diagnostic(Code.SYSTEM_INFO, decode_system_info),
            Code.PREFERENCES: self._diagnostic(Code.PREFERENCES, decode_preferences),
        }

    def clear_status(self) -> None:
        """Forget the last status payload, so that the next one is a change."""
        self._last_status = None

    def interpret(self, pkt: Packet) -> Interpretation:
        """Decode a packet and apply it to the state (is never fatal)."""

        if (handler := self._handlers.get(pkt.code)) is None:
            # expected, e.g. from the use of the spa's own control panel
            _LOGGER.info("%s < Unknown code, ignored", pkt._hdr)
            return Interpretation(pkt.code, False)

        try:
            return handler(pkt.payload)
        except PacketPayloadInvalid as err:
            _LOGGER.warning("%s < %s", pkt._hdr, err)
            return Interpretation(pkt.code, False)

    def _status(self, payload: bytes) -> Interpretation:
        """Decode a status (heartbeat) payload.

        It is a change if any byte differs from the previous status, except for the
        hour/minute bytes (or if there is no previous status).
        """

        if len(payload) < STATUS_MIN_LENGTH:
            raise PacketPayloadInvalid(f"Status payload too short: {payload.hex()}")

        prev, self._last_status = self._last_status, bytes(payload)
        changed = (
            prev is None
            or len(prev) != len(payload)
            or any(
                a != b
                for i, (a, b) in enumerate(zip(prev, payload))
                if i not in STATUS_VOLATILE_OFFSETS
            )
        )

        self._decode_status(payload)  # every status is decoded

        if changed or _DBG_LOG_ALL_STATUS:
            _LOGGER.debug("Status has changed: %s", payload.hex().upper())
        return Interpretation(Code.STATUS, changed, self._state)

    def _decode_status(self, payload: bytes) -> None:
        state = self._state
        bits = self._bits

        state.is_hold = payload[0] == SPA_STATE_HOLD
        state.is_priming = bool(payload[1] & 0x01)
        state.current_temp = _temp_or_none(payload[2])
        state.hour, state.minute = payload[3], payload[4]

        mode = payload[5] & 0x03
        state.heating_mode = HEATING_MODES[mode] if mode < len(HEATING_MODES) else None

        flags = payload[9]
        state.temp_unit = TempUnit.CELSIUS if flags & 0x01 else TempUnit.FAHRENHEIT
        state.is_24h = bool(flags & 0x02)
        state.filter_cycle = (flags & 0x0C) >> 2
        state.settings_locked = bool(flags & 0x10)
        state.panel_locked = bool(flags & 0x20)

        flags = payload[10]
        state.temp_range_is_high = bool(flags & 0x04)
        state.is_heating_now = bool(flags & 0x30)

        pumps = payload[11] + (payload[12] << 8)  # 2 bits per pump
        for idx in range(NUM_PUMPS):
            if self._bypass or _not_absent(state.pumps[idx]):
                speed = (pumps >> (2 * idx)) & 0x03
                state.pump_speeds[idx] = min(speed, MAX_PUMP_RANGE)

        if self._bypass or _not_absent(state.has_circulation_pump):
            state.circulation_pump = bool(bits.circulation_pump.extract(payload))
        if self._bypass or _not_absent(state.blower):
            state.blower_speed = bits.blower.extract(payload)

        if self._bypass or _not_absent(state.lights[0]):
            state.lights_on[0] = (payload[14] & 0x03) == 0x03
        if self._bypass or _not_absent(state.lights[1]):
            state.lights_on[1] = (payload[14] & 0x0C) == 0x0C

        if self._bypass or _not_absent(state.mister):
            state.mister_on = bool(bits.mister.extract(payload))
        for idx, field in enumerate((bits.aux_1, bits.aux_2)):
            if self._bypass or _not_absent(state.aux[idx]):
                state.aux_on[idx] = bool(field.extract(payload))

        state.target_temp = _temp_or_none(payload[20])  # of the active range

    def _fault_log(self, payload: bytes) -> Interpretation:
        entry, changed = self.fault_log.update(payload)
        self._state.flow = self.fault_log.flow
        return Interpretation(Code.FAULT_LOG, changed, entry)

    def _capabilities(self, payload: bytes) -> Interpretation:
        caps = Capabilities.from_payload(payload)

        if self._bypass:
            _LOGGER.info("Capabilities: %s (ignored, as configured)", caps)
            return Interpretation(Code.CAPABILITIES, False, caps)

        _LOGGER.info("Capabilities: %s", caps)
        caps.apply(self._state)
        self.clear_status()  # so the next status is decoded against the capabilities
        return Interpretation(Code.CAPABILITIES, True, caps)

    @staticmethod
    def _diagnostic(
        code: Code, decoder: Callable[[bytes], dict[str, Any]]
    ) -> Callable[[bytes], Interpretation]:
        """Return a handler that decodes and logs, but does not change the state."""

        def handler(payload: bytes) -> Interpretation:
            result = decoder(payload)
            _LOGGER.info("%s: %s", code.name, result)
            return Interpretation(code, False, result)

        return handler
