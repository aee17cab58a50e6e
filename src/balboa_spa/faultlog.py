#!/usr/bin/env python3
"""Balboa spa - Expose the fault log (is a stateful process).

The spa only ever returns its most recent fault log entry. Only low/failed flow faults
from today affect the flow health, all others are informational.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from balboa_tx.exceptions import PacketPayloadInvalid, ProtocolError

from .const import (
    DEFAULT_FAULT_INITIAL_DELAY,
    DEFAULT_FAULT_POLL_INTERVAL,
    FAULT_CODE_FLOW_FAILED,
    FAULT_CODE_LOW_FLOW,
    FAULT_MESSAGES,
    FlowState,
)

_LOGGER = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, kw_only=True)
class FaultLogEntry:
    """The most recent fault log entry of the spa.

    The payload is 10 bytes: count, entry_num, code, days_ago, hour, minute, heat_mode,
    set_temp, sensor_a_temp, sensor_b_temp (the temperatures are in device units).
    """

    count: int  # #         # number of entries in the log
    entry_num: int  # #     # the index of this entry
    code: int  # #          # e.g. 16 (low flow)
    days_ago: int
    hour: int
    minute: int
    heat_mode: int  # #     # a flags byte
    set_temp: int
    sensor_a_temp: int
    sensor_b_temp: int

    def __str__(self) -> str:
        return (
            f"{self.code:>2}, {self.days_ago} day(s) ago at "
            f"{self.hour:02d}:{self.minute:02d}, {self.message}"
        )

    @property
    def message(self) -> str:
        """Return a human-readable description of the fault."""
        return FAULT_MESSAGES.get(self.code, f"Unknown fault code: {self.code}")

    @property
    def flow(self) -> FlowState:
        """Return the flow health implied by this entry (only today's faults count)."""

        if self.days_ago != 0:
            return FlowState.GOOD
        if self.code == FAULT_CODE_LOW_FLOW:
            return FlowState.LOW
        if self.code == FAULT_CODE_FLOW_FAILED:
            return FlowState.FAILED
        return FlowState.GOOD

    @classmethod
    def from_payload(cls, payload: bytes) -> FaultLogEntry:
        """Create a fault log entry from a FAULT_LOG packet's payload."""

        if len(payload) < 10:
            raise PacketPayloadInvalid(
                f"Fault log payload is too short: {payload.hex().upper()}"
            )

        return cls(
            **dict(zip((f.name for f in dataclasses.fields(cls)), payload[:10]))
        )


class FaultLog:
    """Track the spa's most recent fault log entry."""

    def __init__(self) -> None:
        self._raw: bytes | None = None
        self._entry: FaultLogEntry | None = None

    def __repr__(self) -> str:
        return f"FaultLog(latest={self._entry})"

    @property
    def latest(self) -> FaultLogEntry | None:
        return self._entry

    @property
    def flow(self) -> FlowState:
        return self._entry.flow if self._entry else FlowState.GOOD

    def update(self, payload: bytes) -> tuple[FaultLogEntry, bool]:
        """Process a fault log payload, and return the entry (and if it is news).

        Returns True only for a newly-observed, same-day, flow-relevant fault.
        """

        if self._entry is not None and payload == self._raw:
            _LOGGER.debug("Fault log is unchanged: %s", self._entry)
            return self._entry, False

        entry = FaultLogEntry.from_payload(payload)
        self._raw, self._entry = bytes(payload), entry

        if entry.flow != FlowState.GOOD:
            _LOGGER.warning("Fault log has a flow fault: %s", entry)
            return entry, True

        _LOGGER.info("Fault log entry: %s", entry)
        return entry, False


class FaultLogPoller:
    """Request the fault log, after an initial delay and then periodically.

    There is only ever one poller task; restarting it cancels any previous task.
    """

    def __init__(
        self,
        request_fnc: Callable[[], Awaitable[Any]],
        /,
        *,
        initial_delay: float = DEFAULT_FAULT_INITIAL_DELAY,
        interval: float = DEFAULT_FAULT_POLL_INTERVAL,
    ) -> None:
        self._request_fnc = request_fnc
        self.initial_delay = initial_delay
        self.interval = interval

        self._poller: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._poller is not None and not self._poller.done()

    def start(self) -> asyncio.Task[None]:
        """(Re)start the poller, and return its task."""

        self.stop()

        self._poller = asyncio.get_running_loop().create_task(
            self._poll_fault_log(), name="FaultLogPoller._poll_fault_log()"
        )
        return self._poller

    def stop(self) -> None:
        """Stop the poller (only if it is running)."""

        if self.is_running:
            self._poller.cancel()  # type: ignore[union-attr]
        self._poller = None

    async def _poll_fault_log(self) -> None:
        await asyncio.sleep(self.initial_delay)

        while True:
            try:
                await self._request_fnc()
            except ProtocolError as err:  # incl. TransportError
                _LOGGER.warning("Failed to request the fault log: %s", err)

            await asyncio.sleep(self.interval)
