#!/usr/bin/env python3
"""Balboa spa - capability discovery (which pumps, lights, etc. exist).

The reply to Command.get_capabilities() is (at least) 5 bytes:

    Byte  | Data
    ---------------------------
    00    | pumps 1-4 (2 bits each: 0 = absent, 1 = off/high, 2 = off/low/high)
    01    | pump 5 (bits 0-1), pump 6 (bits 6-7)
    02    | light 1 (bits 0-1), light 2 (bits 6-7)
    03    | blower range (bits 0-1), circulation pump (bit 7)
    04    | aux 1 (bit 0), aux 2 (bit 1), mister (bits 4-5)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from balboa_tx.exceptions import PacketPayloadInvalid

from .const import MAX_BLOWER_RANGE, MAX_PUMP_RANGE, NUM_PUMPS
from .state import ABSENT, Present, SpaState

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Capabilities:
    """The components of the spa, as reported by the spa itself."""

    pump_ranges: tuple[int, ...]  # per slot: 0 (absent), 1, or 2
    light_1: bool
    light_2: bool
    blower_range: int  # 0 (absent) to 3
    circulation_pump: bool
    mister: bool
    aux_1: bool
    aux_2: bool

    def __str__(self) -> str:
        return (
            f"pumps={list(self.pump_ranges)}, lights={[self.light_1, self.light_2]}, "
            f"blower={self.blower_range}, circ_pump={self.circulation_pump}, "
            f"mister={self.mister}, aux={[self.aux_1, self.aux_2]}"
        )

    @property
    def num_pumps(self) -> int:
        return len([r for r in self.pump_ranges if r])

    @classmethod
    def from_payload(cls, payload: bytes) -> Capabilities:
        """Decode the payload of a CAPABILITIES packet."""

        if len(payload) < 5:
            raise PacketPayloadInvalid(
                f"Capabilities payload is too short: {payload.hex().upper()}"
            )

        b0, b1, b2, b3, b4 = payload[:5]

        # slots 5 & 6 are not contiguous with slots 1-4
        pumps = b0 + 256 * (b1 & 0x03) + 16 * (b1 & 0xC0)

        return cls(
            pump_ranges=tuple((pumps >> (2 * i)) & 0x03 for i in range(NUM_PUMPS)),
            light_1=bool(b2 & 0x03),
            light_2=bool(b2 & 0xC0),
            blower_range=b3 & 0x03,
            circulation_pump=bool(b3 & 0x80),
            mister=bool(b4 & 0x30),
            aux_1=bool(b4 & 0x01),
            aux_2=bool(b4 & 0x02),
        )

    def apply(self, state: SpaState) -> None:
        """Set the existence tags of the state's components."""

        state.pumps = [
            Present(min(r, MAX_PUMP_RANGE)) if r else ABSENT for r in self.pump_ranges
        ]
        state.lights = [Present() if x else ABSENT for x in (self.light_1, self.light_2)]
        state.blower = (
            Present(min(self.blower_range, MAX_BLOWER_RANGE))
            if self.blower_range
            else ABSENT
        )
        state.mister = Present() if self.mister else ABSENT
        state.aux = [Present() if x else ABSENT for x in (self.aux_1, self.aux_2)]
        state.has_circulation_pump = Present() if self.circulation_pump else ABSENT

        # absent components are always off
        state.pump_speeds = [
            s if r else 0 for s, r in zip(state.pump_speeds, self.pump_ranges)
        ]
        state.lights_on = [
            x and y for x, y in zip(state.lights_on, (self.light_1, self.light_2))
        ]
        state.blower_speed = state.blower_speed if self.blower_range else 0
        state.mister_on = state.mister_on and self.mister
        state.aux_on = [x and y for x, y in zip(state.aux_on, (self.aux_1, self.aux_2))]
        state.circulation_pump = state.circulation_pump and self.circulation_pump

        state.accurate_config_known = True
