#!/usr/bin/env python3

# TODO:
# - confirm the bit positions of the blower, mister & aux (c.f. StatusBitMap)


"""Balboa spa - the client (a live model of the spa, and the means to change it)."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from types import SimpleNamespace
from typing import Any, TextIO

from balboa_tx import Code, Command, Engine, Packet, set_pkt_logging_config
from balboa_tx.exceptions import ProtocolError
from balboa_tx.schemas import SCH_ENGINE_CONFIG, PktLogConfigT

from .const import (
    BLOWER_SPEEDS,
    MAX_BLOWER_RANGE,
    MAX_PUMP_RANGE,
    NUM_AUX,
    NUM_LIGHTS,
    NUM_PUMPS,
    PUMP_SPEEDS,
    FlowState,
    TempUnit,
)
from .exceptions import SpaNotConnected, SpaValueInvalid
from .faultlog import FaultLogEntry, FaultLogPoller
from .interpreter import Interpretation, Interpreter, StatusBitMap
from .schemas import SCH_CLIENT_CONFIG
from .state import Absent, SpaState, range_of
from .synthesis import CommandSynthesizer

_LOGGER = logging.getLogger(__name__)


_CallbackT = Callable[[], None]


class SpaClient(Engine):
    """The client class."""

    def __init__(
        self,
        host: str | None,
        input_file: TextIO | None = None,
        *,
        config: dict[str, Any] | None = None,
        packet_log: PktLogConfigT | None = None,
        on_state_changed: _CallbackT | None = None,
        on_config_known: _CallbackT | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        config = config or {}

        super().__init__(
            host,
            input_file=input_file,
            packet_log=packet_log,
            loop=loop,
            **SCH_ENGINE_CONFIG(config),
        )

        self.config = SimpleNamespace(**SCH_CLIENT_CONFIG(config))

        self._state = SpaState()
        self._interpreter = Interpreter(
            self._state,
            bit_map=StatusBitMap.from_config(self.config.status_bits),
            ignore_capabilities=self.config.ignore_capabilities,
        )
        self._synthesizer = CommandSynthesizer(
            self._state,
            self.async_send_cmd,
            confirm_delay=self.config.confirm_delay,
            ignore_capabilities=self.config.ignore_capabilities,
            clear_status_fnc=self._interpreter.clear_status,
        )
        self._fault_poller = FaultLogPoller(
            self._request_fault_log,
            initial_delay=self.config.fault_initial_delay,
            interval=self.config.fault_poll_interval,
        )

        self._on_state_changed = on_state_changed
        self._on_config_known = on_config_known
        self._config_known_fired = False
        self._notify_timer: asyncio.TimerHandle | None = None
        self._is_stopped = False

        if self.config.ignore_capabilities:
            _LOGGER.warning("Capabilities are ignored: all components are present")
            self._state.set_all_present()
            self._state.accurate_config_known = True
            self._loop.call_soon(self._config_is_known)

    def __repr__(self) -> str:
        if not self.host:
            return f"SpaClient(input_file={self._input_file})"
        return f"SpaClient(host={self.host}, port={self._port})"

    async def start(self) -> None:
        """Start the client (and replay the packet log, if that is the source)."""

        self._is_stopped = False

        await set_pkt_logging_config(**self._packet_log)
        await super().start()

    async def stop(self) -> None:
        """Stop the client, cancelling all timers and tasks."""

        self._is_stopped = True

        if self._notify_timer is not None:
            self._notify_timer.cancel()
            self._notify_timer = None
        self._fault_poller.stop()
        self._synthesizer.cancel_pending()

        await super().stop()

    #
    # Callbacks from the Engine

    def _connection_made(self) -> None:
        """Request the config (and capabilities), and (re)start the fault poller."""

        super()._connection_made()
        self.add_task(self._loop.create_task(self._post_connect()))
        self._schedule_notify()

    def _connection_lost(self) -> None:
        super()._connection_lost()
        self._fault_poller.stop()
        self._interpreter.clear_status()
        self._schedule_notify()

    async def _post_connect(self) -> None:
        if self._disable_sending:
            _LOGGER.info("%s: Sending is disabled, so not requesting the config", self)
            return

        try:
            await self.async_send_cmd(Command.get_config())
            if not self._state.accurate_config_known:
                await self.async_send_cmd(Command.get_capabilities())
        except ProtocolError as err:  # will retry on the next connection
            _LOGGER.warning("%s: Failed to send the post-connect requests: %s", self, err)
            return

        self.add_task(self._fault_poller.start())

    async def _request_fault_log(self) -> None:
        await self.async_send_cmd(Command.get_fault_log())

    def _pkt_handler(self, pkt: Packet) -> None:
        super()._pkt_handler(pkt)

        result: Interpretation = self._interpreter.interpret(pkt)

        if result.code == Code.CAPABILITIES and self._state.accurate_config_known:
            self._config_is_known()
        if result.changed:
            self._schedule_notify()

    def _config_is_known(self) -> None:
        """Invoke the configuration-known callback, but only once."""

        if self._config_known_fired:
            return
        self._config_known_fired = True

        _LOGGER.info("%s: Configuration is known: %s", self, self.state_to_string())
        if self._on_config_known:
            self._on_config_known()

    def _schedule_notify(self) -> None:
        """Invoke the state-changed callback, coalescing any calls within a delay."""

        if self._is_stopped or self._on_state_changed is None:
            return
        if self._notify_timer is not None:  # one is already pending
            return

        self._notify_timer = self._loop.call_later(
            self.config.notify_delay, self._notify
        )

    def _notify(self) -> None:
        self._notify_timer = None
        if self._on_state_changed:
            self._on_state_changed()

    #
    # Accessors

    @property
    def state(self) -> SpaState:
        return self._state

    @property
    def accurate_config_known(self) -> bool:
        return self._state.accurate_config_known

    def _to_display(self, temp: int | None) -> float | None:
        """Convert from device units (Celsius is in half-degrees)."""

        if temp is None:
            return None
        if self._state.temp_unit == TempUnit.CELSIUS:
            return temp / 2
        return float(temp)

    @property
    def current_temp(self) -> float | None:
        return self._to_display(self._state.current_temp)

    @property
    def target_temp(self) -> float | None:
        return self._to_display(self._state.target_temp)

    @property
    def temp_range_is_high(self) -> bool:
        return self._state.temp_range_is_high

    @property
    def temp_unit(self) -> TempUnit:
        return self._state.temp_unit

    @property
    def is_heating_now(self) -> bool:
        return self._state.is_heating_now

    @property
    def heating_mode(self) -> str | None:
        return self._state.heating_mode

    @property
    def is_heating_mode_always_ready(self) -> bool:
        return self._state.is_heating_mode_always_ready

    @property
    def is_priming(self) -> bool:
        return self._state.is_priming

    @property
    def is_hold(self) -> bool:
        return self._state.is_hold

    @property
    def flow_state(self) -> FlowState:
        return self._state.flow

    @property
    def fault(self) -> FaultLogEntry | None:
        """Return the most recent fault log entry, if any."""
        return self._interpreter.fault_log.latest

    @staticmethod
    def _check_index(name: str, idx: int, num: int) -> int:
        if not 1 <= idx <= num:
            raise SpaValueInvalid(f"{name} must be between 1 and {num}, not {idx}")
        return idx - 1

    def get_pump_speed(self, pump: int) -> int | None:
        """Return the speed of a pump, or None if it is not present."""

        idx = self._check_index("Pump", pump, NUM_PUMPS)
        if isinstance(self._state.pumps[idx], Absent):
            return None
        return self._state.pump_speeds[idx]

    def get_pump_speed_range(self, pump: int) -> int:
        """Return the number of speeds of a pump (0 if it is not present)."""

        idx = self._check_index("Pump", pump, NUM_PUMPS)
        return range_of(self._state.pumps[idx], MAX_PUMP_RANGE)

    def get_is_light_on(self, light: int) -> bool | None:
        idx = self._check_index("Light", light, NUM_LIGHTS)
        if isinstance(self._state.lights[idx], Absent):
            return None
        return self._state.lights_on[idx]

    def get_blower_speed(self) -> int | None:
        if isinstance(self._state.blower, Absent):
            return None
        return self._state.blower_speed

    def get_blower_speed_range(self) -> int:
        return range_of(self._state.blower, MAX_BLOWER_RANGE)

    def get_is_mister_on(self) -> bool | None:
        if isinstance(self._state.mister, Absent):
            return None
        return self._state.mister_on

    def get_is_aux_on(self, aux: int) -> bool | None:
        idx = self._check_index("Aux", aux, NUM_AUX)
        if isinstance(self._state.aux[idx], Absent):
            return None
        return self._state.aux_on[idx]

    def get_is_locked(self, entire_spa: bool) -> bool:
        """Return True if the panel (else only the settings) is locked."""

        if entire_spa:
            return self._state.panel_locked
        return self._state.settings_locked

    def get_circulation_pump(self) -> bool | None:
        if isinstance(self._state.has_circulation_pump, Absent):
            return None
        return self._state.circulation_pump

    @staticmethod
    def speed_as_string(speed: int | None, blower: bool = False) -> str:
        """Return a pump (or blower) speed as a label, e.g. 'Off', 'Low', 'High'."""

        labels = BLOWER_SPEEDS if blower else PUMP_SPEEDS
        if speed is None or not 0 <= speed < len(labels):
            return "Unknown"
        return labels[speed]

    def _temp_to_string(self, temp: float | None) -> str:
        if temp is None:
            return "Unknown"
        if self._state.temp_unit == TempUnit.CELSIUS:
            return f"{temp:.1f}"
        return f"{temp:.0f}"

    def state_to_string(self) -> str:
        """Return a (multi-line) summary of the state, suitable for logging."""

        state = self._state

        pumps = ", ".join(
            f"Pump{n}: {self.speed_as_string(self.get_pump_speed(n))}"
            for n in range(1, NUM_PUMPS + 1)
            if self.get_pump_speed(n) is not None
        )
        lights = ", ".join(
            f"Light{n}: {self.get_is_light_on(n)}"
            for n in range(1, NUM_LIGHTS + 1)
            if self.get_is_light_on(n) is not None
        )

        return (
            f"Temp: {self._temp_to_string(self.current_temp)}, "
            f"Set Temp: {self._temp_to_string(self.target_temp)}, "
            f"Time: {state.hour:02d}:{state.minute:02d}\n"
            f"Priming: {state.is_priming}, Heating Mode: {state.heating_mode}, "
            f"Temp Scale: {state.temp_unit}, "
            f"Time Scale: {'24 Hr' if state.is_24h else '12 Hr'}\n"
            f"Heating: {state.is_heating_now}, "
            f"Temp Range: {'High' if state.temp_range_is_high else 'Low'}, "
            f"{pumps}, Circ Pump: {self.get_circulation_pump()}, {lights}, "
            f"Blower: {self.speed_as_string(self.get_blower_speed(), blower=True)}, "
            f"Mister: {self.get_is_mister_on()}, "
            f"Aux: {[self.get_is_aux_on(n) for n in range(1, NUM_AUX + 1)]}\n"
            f"Hold: {state.is_hold}, Flow: {state.flow}, "
            f"Locked: {self.get_is_locked(True)}/{self.get_is_locked(False)}"
        )

    #
    # Mutators

    def _check_connection(self) -> None:
        if not self.has_good_connection():
            _LOGGER.warning("%s: Not connected to the spa, command refused", self)
            raise SpaNotConnected(f"{self}: Not connected to the spa")

    async def set_target_temp(self, temp: float) -> None:
        """Set the target temperature of the active range (in display units)."""
        self._check_connection()
        await self._synthesizer.set_target_temp(temp)

    async def set_pump_speed(self, pump: int, speed: int) -> None:
        """Set the speed of a pump (0 = off, 1 = low, 2 = high)."""
        self._check_connection()
        await self._synthesizer.set_pump_speed(pump, speed)

    async def set_light_state(self, light: int, on: bool) -> None:
        self._check_connection()
        await self._synthesizer.set_light_state(light, on)

    async def set_blower_speed(self, speed: int) -> None:
        self._check_connection()
        await self._synthesizer.set_blower_speed(speed)

    async def set_mister_state(self, on: bool) -> None:
        self._check_connection()
        await self._synthesizer.set_mister_state(on)

    async def set_aux_state(self, aux: int, on: bool) -> None:
        self._check_connection()
        await self._synthesizer.set_aux_state(aux, on)

    async def set_temp_range_is_high(self, high: bool) -> None:
        self._check_connection()
        await self._synthesizer.set_temp_range_is_high(high)

    async def set_hold(self, on: bool) -> None:
        self._check_connection()
        await self._synthesizer.set_hold(on)

    async def set_heating_mode_always_ready(self, ready: bool) -> None:
        self._check_connection()
        await self._synthesizer.set_heating_mode_always_ready(ready)

    async def set_locked(self, entire_spa: bool, locked: bool) -> None:
        """Lock/unlock the entire control panel, or only its settings."""
        self._check_connection()
        await self._synthesizer.set_locked(entire_spa, locked)

    async def set_time(self, hour: int, minute: int, is_24h: bool | None = None) -> None:
        self._check_connection()
        await self._synthesizer.set_time(hour, minute, is_24h=is_24h)
