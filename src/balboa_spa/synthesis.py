#!/usr/bin/env python3
"""Balboa spa - synthesise the toggle sequences that effect a change of state.

The spa has no 'set' primitive for its accessories, only a 'toggle' that advances an
item to its next state (wrapping). For an item with n states, to go from the current
state to the desired state requires:

    toggles = (n + desired - current) % n

Each toggle is a separate frame, and none are acknowledged (only the next status will
confirm the outcome, if at all).
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Final

from balboa_tx import Command

from .const import (
    AUX_ITEMS,
    DEFAULT_CONFIRM_DELAY,
    LIGHT_ITEMS,
    MAX_BLOWER_RANGE,
    MAX_PUMP_RANGE,
    NUM_AUX,
    NUM_LIGHTS,
    NUM_PUMPS,
    PUMP_ITEMS,
    TEMP_LIMITS,
    LockAction,
    TempUnit,
    ToggleItem,
)
from .exceptions import SpaComponentAbsent, SpaValueInvalid
from .state import Absent, ExistenceT, SpaState, range_of

#
# NOTE: All debug flags should be False for deployment to end-users
_DBG_LOG_TOGGLES: Final[bool] = False

_LOGGER = logging.getLogger(__name__)


SendFncT = Callable[[Command], Awaitable[None]]

SPEED_HIGH: Final[int] = 2  # a 1-speed pump reports its 'on' state as high


def toggle_count(num_states: int, current: int, desired: int) -> int:
    """Return the number of toggles needed to advance from current to desired."""
    return (num_states + desired - current) % num_states


def pump_toggle_count(speed_range: int, current: int, desired: int) -> int:
    """Return the number of toggles for a pump (current/desired are speeds).

    A 2-speed pump cycles through off, low, high. A 1-speed pump cycles through off,
    high (so its speed 2 is its state 1).
    """

    if speed_range == 1:
        return toggle_count(2, min(current, 1), min(desired, 1))
    return toggle_count(3, current, desired)


class CommandSynthesizer:
    """Turn the desired state of a component into a sequence of commands.

    There is one lock per component: a request waits for any pending sequence for the
    same component (incl. its confirmation delay), and is then based upon fresh state.
    """

    def __init__(
        self,
        state: SpaState,
        send_fnc: SendFncT,
        /,
        *,
        confirm_delay: float = DEFAULT_CONFIRM_DELAY,
        ignore_capabilities: bool = False,
        clear_status_fnc: Callable[[], None] | None = None,
    ) -> None:
        self._state = state
        self._send_fnc = send_fnc
        self.confirm_delay = confirm_delay
        self._bypass = ignore_capabilities
        self._clear_status = clear_status_fnc or (lambda: None)

        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._pending: set[asyncio.Future[None]] = set()

    def cancel_pending(self) -> None:
        """Cancel any confirmation delays, and so the sequences awaiting them."""

        for fut in list(self._pending):
            fut.cancel()
        self._pending.clear()

    async def _confirm_delay(self) -> None:
        """Wait for the next status (it may confirm the outcome of a toggle)."""

        fut = asyncio.ensure_future(asyncio.sleep(self.confirm_delay))
        self._pending.add(fut)
        try:
            await fut
        finally:
            self._pending.discard(fut)

    def _range_of(self, existence: ExistenceT, max_range: int) -> int:
        if self._bypass:
            return max_range
        return range_of(existence, max_range)

    async def _toggle(self, item: ToggleItem, count: int = 1) -> None:
        """Send count toggle commands for the item (each is a separate frame)."""

        if _DBG_LOG_TOGGLES:
            _LOGGER.warning("Toggling %s x%s", item.name, count)
        else:
            _LOGGER.debug("Toggling %s x%s", item.name, count)

        for _ in range(count):
            await self._send_fnc(Command.toggle_item(item))

    def _check_present(self, name: str, existence: ExistenceT) -> None:
        """Raise SpaComponentAbsent if the component is known to be absent."""

        if self._bypass or not self._state.accurate_config_known:
            return
        if isinstance(existence, Absent):
            _LOGGER.error("%s: is not present on this spa, so cannot be changed", name)
            raise SpaComponentAbsent(f"{name}: is not present on this spa")

    @staticmethod
    def _check_index(name: str, idx: int, num: int) -> int:
        if not 1 <= idx <= num:
            raise SpaValueInvalid(f"{name} must be between 1 and {num}, not {idx}")
        return idx - 1

    async def set_pump_speed(self, pump: int, speed: int) -> None:
        """Set the speed of a pump (0 = off, 1 = low, 2 = high)."""

        idx = self._check_index("Pump", pump, NUM_PUMPS)
        name = f"Pump {pump}"

        async with self._locks[name]:
            existence = self._state.pumps[idx]
            self._check_present(name, existence)

            speed_range = self._range_of(existence, MAX_PUMP_RANGE)
            if not 0 <= speed <= MAX_PUMP_RANGE:
                raise SpaValueInvalid(f"{name}: speed must be 0-2, not {speed}")

            if speed_range == 1 and speed == 1:
                _LOGGER.warning("%s: has only one speed, so will use high", name)
                speed = SPEED_HIGH

            current = self._state.pump_speeds[idx]
            if current == speed:
                return

            item = PUMP_ITEMS[idx]

            if speed_range == 2 and current == 2 and speed == 1:
                await self._pump_high_to_low(name, idx, item)
                return

            await self._toggle(item, pump_toggle_count(speed_range, current, speed))
            self._state.pump_speeds[idx] = speed

            if speed == 0:
                self._clear_status()  # the next status will be a change

    async def _pump_high_to_low(self, name: str, idx: int, item: ToggleItem) -> None:
        """Go from high to low, allowing for the spa not cycling through off.

        Mid-filtration, the spa may skip off (high -> low), so: toggle once, then only
        toggle again if the spa has confirmed (or not denied) that the pump is off.
        """

        await self._toggle(item)
        self._state.pump_speeds[idx] = 0
        self._clear_status()

        await self._confirm_delay()

        if (current := self._state.pump_speeds[idx]) != 0:
            _LOGGER.info("%s: went from high to %s (skipped off)", name, current)
            return

        await self._toggle(item)
        self._state.pump_speeds[idx] = 1

    async def set_blower_speed(self, speed: int) -> None:
        """Set the speed of the blower (0 = off, to 3 = high)."""

        name = "Blower"

        async with self._locks[name]:
            self._check_present(name, self._state.blower)

            speed_range = self._range_of(self._state.blower, MAX_BLOWER_RANGE)
            if not 0 <= speed <= speed_range:
                raise SpaValueInvalid(
                    f"{name}: speed must be 0-{speed_range}, not {speed}"
                )

            count = toggle_count(MAX_BLOWER_RANGE + 1, self._state.blower_speed, speed)
            if count:
                await self._toggle(ToggleItem.BLOWER, count)
            self._state.blower_speed = speed

    async def _set_binary(
        self,
        name: str,
        item: ToggleItem,
        current: bool,
        desired: bool,
        existence: ExistenceT | None = None,
    ) -> bool:
        """Toggle the item once, if its current state is not as desired.

        Return True if a toggle was sent.
        """

        if existence is not None:
            self._check_present(name, existence)

        if current == desired:
            return False

        await self._toggle(item)
        return True

    async def set_light_state(self, light: int, on: bool) -> None:
        idx = self._check_index("Light", light, NUM_LIGHTS)
        name = f"Light {light}"

        async with self._locks[name]:
            if await self._set_binary(
                name,
                LIGHT_ITEMS[idx],
                self._state.lights_on[idx],
                on,
                existence=self._state.lights[idx],
            ):
                self._state.lights_on[idx] = on

    async def set_mister_state(self, on: bool) -> None:
        name = "Mister"

        async with self._locks[name]:
            if await self._set_binary(
                name,
                ToggleItem.MISTER,
                self._state.mister_on,
                on,
                existence=self._state.mister,
            ):
                self._state.mister_on = on

    async def set_aux_state(self, aux: int, on: bool) -> None:
        idx = self._check_index("Aux", aux, NUM_AUX)
        name = f"Aux {aux}"

        async with self._locks[name]:
            if await self._set_binary(
                name,
                AUX_ITEMS[idx],
                self._state.aux_on[idx],
                on,
                existence=self._state.aux[idx],
            ):
                self._state.aux_on[idx] = on

    async def set_hold(self, on: bool) -> None:
        async with self._locks["Hold"]:
            if await self._set_binary(
                "Hold", ToggleItem.HOLD, self._state.is_hold, on
            ):
                self._state.is_hold = on

    async def set_temp_range_is_high(self, high: bool) -> None:
        async with self._locks["Temperature"]:
            if await self._set_binary(
                "Temperature range",
                ToggleItem.TEMP_RANGE,
                self._state.temp_range_is_high,
                high,
            ):
                self._state.temp_range_is_high = high

    async def set_heating_mode_always_ready(self, ready: bool) -> None:
        """Switch the heating mode between Ready and Rest."""

        async with self._locks["Heating mode"]:
            if await self._set_binary(
                "Heating mode",
                ToggleItem.HEATING_MODE,
                self._state.is_heating_mode_always_ready,
                ready,
            ):
                self._state.heating_mode = "Ready" if ready else "Rest"

    async def set_target_temp(self, temp: float) -> None:
        """Set the target temperature of the active range (in display units)."""

        async with self._locks["Temperature"]:
            unit = self._state.temp_unit
            lower, upper = TEMP_LIMITS[unit][self._state.temp_range_is_high]

            if not lower <= temp <= upper:
                raise SpaValueInvalid(
                    f"Target temperature must be {lower}-{upper} {unit}, not {temp}"
                )

            raw = round(temp * 2) if unit == TempUnit.CELSIUS else round(temp)
            await self._send_fnc(Command.set_target_temp(raw))
            self._state.target_temp = raw

    async def set_locked(self, entire_spa: bool, locked: bool) -> None:
        """Lock/unlock the entire control panel, or only its settings."""

        if entire_spa:
            action = LockAction.LOCK_PANEL if locked else LockAction.UNLOCK_PANEL
        else:
            action = LockAction.LOCK_SETTINGS if locked else LockAction.UNLOCK_SETTINGS

        async with self._locks["Lock"]:
            await self._send_fnc(Command.set_lock(action))
            if entire_spa:
                self._state.panel_locked = locked
            else:
                self._state.settings_locked = locked

    async def set_time(
        self, hour: int, minute: int, is_24h: bool | None = None
    ) -> None:
        """Set the spa's clock (and optionally its 12/24h display mode)."""

        if not 0 <= hour <= 23 or not 0 <= minute <= 59:
            raise SpaValueInvalid(f"Time is invalid: {hour:02d}:{minute:02d}")

        is_24h = self._state.is_24h if is_24h is None else is_24h

        async with self._locks["Time"]:
            await self._send_fnc(Command.set_time(hour, minute, is_24h=is_24h))
            self._state.hour, self._state.minute = hour, minute
            self._state.is_24h = is_24h
