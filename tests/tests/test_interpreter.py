#!/usr/bin/env python3
"""Balboa spa - Test the interpreter (decoding packets into the state model)."""

import logging
from datetime import timedelta

import pytest

from balboa_spa.const import Code, FlowState, TempUnit
from balboa_spa.interpreter import BitField, Interpreter, StatusBitMap
from balboa_spa.state import ABSENT, UNKNOWN, Present, SpaState

from .helpers import CAPABILITIES_PAYLOAD, fault_payload, make_packet, status_payload


@pytest.fixture
def state() -> SpaState:
    return SpaState()


@pytest.fixture
def interpreter(state: SpaState) -> Interpreter:
    return Interpreter(state)


def status_pkt(**kwargs):
    return make_packet(Code.STATUS, status_payload(**kwargs))


def test_status_change_detection(interpreter: Interpreter, state: SpaState) -> None:
    assert interpreter.interpret(status_pkt()).changed  # the first is always a change
    assert not interpreter.interpret(status_pkt()).changed

    # only the hour/minute are ignored, but they are still decoded
    assert not interpreter.interpret(status_pkt(hour=13, minute=1)).changed
    assert (state.hour, state.minute) == (13, 1)

    assert interpreter.interpret(status_pkt(hour=13, minute=1, current_temp=101)).changed
    assert interpreter.interpret(status_pkt(hour=13, minute=1, lights=0x03)).changed

    interpreter.clear_status()
    assert interpreter.interpret(status_pkt(hour=13, minute=1, lights=0x03)).changed


def test_status_decode(interpreter: Interpreter, state: SpaState) -> None:
    pkt = status_pkt(
        hold=True,
        priming=True,
        current_temp=76,
        heating_mode=1,
        flags_9=0x03,  # Celsius, 24h
        flags_10=0x34,  # high range, heating
        pumps=0x36,  # 2, 1, 3
        byte_13=0x02,  # circulation pump
        lights=0x03,
        target_temp=77,
    )

    result = interpreter.interpret(pkt)

    assert result.code == Code.STATUS
    assert result.result is state

    assert state.is_hold
    assert state.is_priming
    assert state.current_temp == 76
    assert state.heating_mode == "Rest"
    assert not state.is_heating_mode_always_ready
    assert state.temp_unit == TempUnit.CELSIUS
    assert state.is_24h
    assert state.temp_range_is_high
    assert state.is_heating_now
    assert state.target_temp_high == 77
    assert state.target_temp == 77
    assert state.target_temp_low is None
    assert state.pump_speeds == [2, 1, 2, 0, 0, 0]  # a 3 is treated as high
    assert state.circulation_pump
    assert state.lights_on == [True, False]


@pytest.mark.parametrize(
    "lights, expected",
    (
        (0x00, [False, False]),
        (0x01, [False, False]),  # a light is on only if both of its bits are set
        (0x02, [False, False]),
        (0x03, [True, False]),
        (0x04, [False, False]),
        (0x08, [False, False]),
        (0x0C, [False, True]),
        (0x0F, [True, True]),
    ),
)
def test_status_decode_lights(lights: int, expected: list[bool]) -> None:
    state = SpaState()
    state.set_all_present()

    Interpreter(state).interpret(status_pkt(lights=lights))

    assert state.lights_on == expected


def test_status_decode_unknowns(interpreter: Interpreter, state: SpaState) -> None:
    interpreter.interpret(status_pkt(current_temp=0xFF, heating_mode=3))

    assert state.current_temp is None
    assert state.heating_mode is None
    assert state.temp_unit == TempUnit.FAHRENHEIT
    assert not state.temp_range_is_high
    assert state.target_temp_low == 102


def test_status_too_short(
    interpreter: Interpreter, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.WARNING):
        result = interpreter.interpret(make_packet(Code.STATUS, bytes(10)))

    assert not result.changed
    assert "too short" in caplog.text


def test_unknown_code(interpreter: Interpreter, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO):
        result = interpreter.interpret(make_packet("0ABF99", b"\x01"))

    assert result.code == "0ABF99"
    assert not result.changed
    assert "Unknown code" in caplog.text


def test_capabilities_then_status(interpreter: Interpreter, state: SpaState) -> None:
    assert state.pumps == [UNKNOWN] * 6
    assert not state.accurate_config_known

    result = interpreter.interpret(make_packet(Code.CAPABILITIES, CAPABILITIES_PAYLOAD))

    assert result.changed
    assert result.result.pump_ranges == (2, 2, 1, 0, 0, 0)
    assert state.accurate_config_known

    assert state.pumps == [Present(2), Present(2), Present(1), ABSENT, ABSENT, ABSENT]
    assert state.lights == [Present(1), ABSENT]
    assert state.blower == ABSENT
    assert state.mister == ABSENT
    assert state.aux == [ABSENT, ABSENT]
    assert state.has_circulation_pump == Present(1)

    # everything is on, but absent components are not updated
    result = interpreter.interpret(
        status_pkt(pumps=0xFFFF, byte_13=0x0E, lights=0x0F, byte_15=0x19)
    )

    assert result.changed
    assert state.pump_speeds == [2, 2, 2, 0, 0, 0]
    assert state.circulation_pump
    assert state.blower_speed == 0
    assert state.lights_on == [True, False]
    assert not state.mister_on
    assert state.aux_on == [False, False]


def test_capabilities_ignored() -> None:
    state = SpaState()
    interpreter = Interpreter(state, ignore_capabilities=True)

    result = interpreter.interpret(make_packet(Code.CAPABILITIES, CAPABILITIES_PAYLOAD))

    assert not result.changed
    assert state.pumps == [UNKNOWN] * 6

    interpreter.interpret(
        status_pkt(pumps=0xFFFF, byte_13=0x0E, lights=0x0F, byte_15=0x19)
    )

    assert state.pump_speeds == [2, 2, 2, 2, 2, 2]
    assert state.blower_speed == 3
    assert state.lights_on == [True, True]
    assert state.mister_on
    assert state.aux_on == [True, True]


def test_status_bit_map() -> None:
    bit_map = StatusBitMap.from_config({"blower": (16, 0x30)})
    assert bit_map.blower == BitField(16, 0x30)
    assert bit_map.mister == StatusBitMap().mister

    state = SpaState()
    interpreter = Interpreter(state, bit_map=bit_map)

    payload = bytearray(status_payload(byte_13=0x0C))
    payload[16] = 0x20
    interpreter.interpret(make_packet(Code.STATUS, bytes(payload)))

    assert state.blower_speed == 2


def test_fault_log(interpreter: Interpreter, state: SpaState) -> None:
    result = interpreter.interpret(make_packet(Code.FAULT_LOG, fault_payload(code=16)))

    assert result.changed
    assert result.result.code == 16
    assert state.flow == FlowState.LOW
    assert interpreter.fault_log.latest == result.result

    result = interpreter.interpret(make_packet(Code.FAULT_LOG, fault_payload(code=16)))
    assert not result.changed  # a duplicate
    assert state.flow == FlowState.LOW

    result = interpreter.interpret(make_packet(Code.FAULT_LOG, fault_payload(code=17)))
    assert result.changed
    assert state.flow == FlowState.FAILED

    pkt = make_packet(Code.FAULT_LOG, fault_payload(code=17, days_ago=1))
    result = interpreter.interpret(pkt)
    assert not result.changed  # not from today
    assert state.flow == FlowState.GOOD


def test_diagnostics(interpreter: Interpreter, state: SpaState) -> None:
    payload = bytes.fromhex("000000" "001527AABBCC") + bytes(range(16))
    result = interpreter.interpret(make_packet(Code.CONFIG, payload))

    assert not result.changed
    assert result.result["mac_address"] == "00:15:27:aa:bb:cc"

    payload = bytes((20, 0, 1, 30, 0x88, 0, 1, 0))
    result = interpreter.interpret(make_packet(Code.FILTER_CYCLES, payload))

    assert not result.changed
    cycle_1, cycle_2 = result.result["filter_cycles"]
    assert cycle_1["start"] == "20:00"
    assert cycle_1["duration"] == timedelta(hours=1, minutes=30)
    assert cycle_2["enabled"]
    assert cycle_2["start"] == "08:00"

    assert state == SpaState()  # diagnostics do not change the state
