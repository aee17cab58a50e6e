#!/usr/bin/env python3
"""Balboa spa - Test the fault log (and its poller)."""

import asyncio
import logging

import pytest

from balboa_spa.const import FlowState
from balboa_spa.faultlog import FaultLog, FaultLogEntry, FaultLogPoller
from balboa_tx import exceptions as exc

from .helpers import assert_this, fault_payload


def test_fault_log_entry() -> None:
    entry = FaultLogEntry.from_payload(fault_payload(code=16, hour=9, minute=15))

    assert entry.count == 3
    assert entry.entry_num == 2
    assert entry.code == 16
    assert entry.days_ago == 0
    assert (entry.hour, entry.minute) == (9, 15)
    assert entry.set_temp == 100
    assert entry.message == "The water flow is low"
    assert entry.flow == FlowState.LOW
    assert str(entry) == "16, 0 day(s) ago at 09:15, The water flow is low"

    entry = FaultLogEntry.from_payload(fault_payload(code=99, days_ago=3))

    assert entry.message == "Unknown fault code: 99"
    assert entry.flow == FlowState.GOOD

    with pytest.raises(exc.PacketPayloadInvalid):
        FaultLogEntry.from_payload(bytes(9))


def test_fault_log_dedup(caplog: pytest.LogCaptureFixture) -> None:
    fault_log = FaultLog()
    assert fault_log.latest is None
    assert fault_log.flow == FlowState.GOOD

    with caplog.at_level(logging.WARNING):
        entry, changed = fault_log.update(fault_payload(code=17))

    assert changed
    assert fault_log.latest == entry
    assert fault_log.flow == FlowState.FAILED
    assert "flow fault" in caplog.text

    assert fault_log.update(fault_payload(code=17)) == (entry, False)

    _, changed = fault_log.update(fault_payload(code=17, minute=16))
    assert changed  # a new occurrence

    _, changed = fault_log.update(fault_payload(code=27))
    assert not changed  # not flow-related
    assert fault_log.flow == FlowState.GOOD


async def test_poller() -> None:
    requests: list[int] = []

    async def request_fnc() -> None:
        requests.append(len(requests))

    poller = FaultLogPoller(request_fnc, initial_delay=0, interval=0.01)
    assert not poller.is_running

    task = poller.start()

    await assert_this(lambda: len(requests) >= 3)
    assert poller.is_running

    poller.start()  # the previous task is cancelled, never two pollers

    await assert_this(task.done)
    assert task.cancelled()
    assert poller.is_running

    poller.stop()

    assert not poller.is_running
    poller.stop()  # is idempotent


async def test_poller_initial_delay() -> None:
    requests: list[int] = []

    async def request_fnc() -> None:
        requests.append(len(requests))

    poller = FaultLogPoller(request_fnc, initial_delay=10, interval=10)
    poller.start()

    await asyncio.sleep(0.05)
    assert requests == []

    poller.stop()


async def test_poller_survives_errors(caplog: pytest.LogCaptureFixture) -> None:
    requests: list[int] = []

    async def request_fnc() -> None:
        requests.append(len(requests))
        raise exc.TransportNotConnected("not connected to the spa")

    poller = FaultLogPoller(request_fnc, initial_delay=0, interval=0.01)

    with caplog.at_level(logging.WARNING):
        poller.start()
        await assert_this(lambda: len(requests) >= 2)

    assert poller.is_running
    assert "Failed to request the fault log" in caplog.text

    poller.stop()
