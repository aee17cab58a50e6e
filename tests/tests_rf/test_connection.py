#!/usr/bin/env python3
"""Balboa TX - Test the connection FSM, and the engine (via a fake spa)."""

import asyncio
import io
from types import SimpleNamespace

import pytest

from balboa_tx import Code, Command, Engine, FileTransport, transport_factory
from balboa_tx import exceptions as exc
from balboa_tx.connection_fsm import (
    Connected,
    Connecting,
    ConnectionContext,
    Disconnected,
)

from ..tests.helpers import LOCALHOST, assert_this, make_frame, status_payload
from .fake_spa import FakeSpa


def _fake_protocol() -> SimpleNamespace:
    """Return a stand-in for a protocol (the context needs only its loop)."""
    return SimpleNamespace(_loop=asyncio.get_running_loop())


async def test_connect_failed() -> None:
    attempts: list[int] = []

    async def connect_fnc() -> None:
        attempts.append(len(attempts))
        raise exc.TransportError("Connection refused")

    ctx = ConnectionContext(_fake_protocol(), connect_fnc, reconnect_delay=10)

    states = []
    ctx.add_handler(states.append)

    assert isinstance(ctx.state, Disconnected)

    ctx.start()
    assert isinstance(ctx.state, Connecting)

    await assert_this(lambda: ctx.reconnect_pending)
    assert isinstance(ctx.state, Disconnected)
    assert attempts == [0]

    timer = ctx._reconnect_timer
    ctx._schedule_reconnect()
    assert ctx._reconnect_timer is timer  # only ever one pending

    ctx.connection_lost(None)  # already disconnected
    assert ctx._reconnect_timer is timer

    ctx.stop()
    assert not ctx.reconnect_pending

    await asyncio.sleep(0)
    assert [type(s) for s in states] == [Connecting, Disconnected]


async def test_reconnect() -> None:
    attempts: list[int] = []

    async def connect_fnc() -> None:
        attempts.append(len(attempts))
        if len(attempts) < 3:
            raise exc.TransportError("Connection refused")
        ctx.connection_made()

    ctx = ConnectionContext(_fake_protocol(), connect_fnc, reconnect_delay=0.01)

    ctx.start()

    await assert_this(lambda: ctx.is_connected)
    assert len(attempts) == 3

    ctx.connection_lost(ConnectionResetError("Connection reset by peer"))
    assert isinstance(ctx.state, Disconnected)

    await assert_this(lambda: ctx.is_connected)
    assert len(attempts) == 4

    ctx.stop()
    assert isinstance(ctx.state, Disconnected)


async def test_stop_cancels_reconnect() -> None:
    attempts: list[int] = []

    async def connect_fnc() -> None:
        attempts.append(len(attempts))
        raise exc.TransportError("Connection refused")

    ctx = ConnectionContext(_fake_protocol(), connect_fnc, reconnect_delay=0.01)

    ctx.start()
    await assert_this(lambda: ctx.reconnect_pending)

    ctx.stop()

    await asyncio.sleep(0.05)
    assert attempts == [0]
    assert not ctx.reconnect_pending


async def test_start_when_connecting() -> None:
    attempts: list[int] = []

    async def connect_fnc() -> None:
        attempts.append(len(attempts))
        await asyncio.sleep(10)

    ctx = ConnectionContext(_fake_protocol(), connect_fnc)

    ctx.start()
    ctx.start()  # ignored, as already connecting

    await asyncio.sleep(0.01)
    assert attempts == [0]

    ctx.stop()
    assert ctx._connect_task is None


async def test_no_connect_fnc() -> None:
    ctx = ConnectionContext(_fake_protocol())

    with pytest.raises(exc.ConnectionFsmError):
        ctx.start()


async def test_remove_handler() -> None:
    async def connect_fnc() -> None:
        ctx.connection_made()

    ctx = ConnectionContext(_fake_protocol(), connect_fnc)

    states = []
    del_handler = ctx.add_handler(states.append)
    del_handler()

    ctx.start()
    await assert_this(lambda: ctx.is_connected)
    await asyncio.sleep(0)

    assert states == []
    assert isinstance(ctx.state, Connected)


async def test_engine(fake_spa: FakeSpa) -> None:
    engine = Engine(LOCALHOST, port=fake_spa.port, reconnect_delay=0.01)

    pkts = []
    engine.add_pkt_handler(pkts.append)

    await engine.start()

    await assert_this(engine.has_good_connection)
    await assert_this(lambda: fake_spa.is_connected)

    # a frame may be split across reads, and several frames may be in one read
    frame = bytes(make_frame(Code.STATUS, status_payload()))
    await fake_spa.send_raw(frame[:10])
    await asyncio.sleep(0.01)
    await fake_spa.send_raw(frame[10:] + frame)

    await assert_this(lambda: len(pkts) == 2)
    assert all(p.code == Code.STATUS for p in pkts)

    await engine.async_send_cmd(Command.get_config())
    await assert_this(lambda: fake_spa.frames == [Command.get_config()])

    await fake_spa.drop()  # as the spa does, from time to time

    await assert_this(lambda: fake_spa.connections == 2)
    await assert_this(engine.has_good_connection)

    await engine.stop()
    assert not engine.has_good_connection()

    with pytest.raises(exc.TransportNotConnected):
        await engine.async_send_cmd(Command.get_config())


async def test_engine_disable_sending(fake_spa: FakeSpa) -> None:
    engine = Engine(LOCALHOST, port=fake_spa.port, disable_sending=True)

    await engine.start()
    await assert_this(engine.has_good_connection)

    with pytest.raises(exc.ProtocolError):
        await engine.async_send_cmd(Command.get_config())

    await engine.stop()
    assert fake_spa.frames == []


async def test_engine_no_source() -> None:
    with pytest.raises(TypeError):
        Engine(None)


async def test_engine_from_packet_log() -> None:
    frame = bytes(make_frame(Code.STATUS, status_payload())).hex().upper()

    packet_log = io.StringIO(
        "# an annotated packet log\n"
        "\n"
        f"2024-03-31T12:00:00.000000 {frame}\n"
        "2024-03-31T12:00:01.000000 # balboa_tx 0.2.0\n"
        f"2024-03-31T12:00:02.000000 {frame} # a comment\n"
    )

    engine = Engine(None, input_file=packet_log)

    pkts = []
    engine.add_pkt_handler(pkts.append)

    await engine.start()  # replays the log to completion
    await engine.stop()

    assert [p.dtm.second for p in pkts] == [0, 2]
    assert pkts[1].comment == "a comment"


async def test_transport_source_invalid() -> None:
    protocol = _fake_protocol()

    with pytest.raises(exc.TransportSourceInvalid):  # both
        await transport_factory(protocol, host=LOCALHOST, packet_log=io.StringIO(""))

    with pytest.raises(exc.TransportSourceInvalid):  # neither
        await transport_factory(protocol)

    with pytest.raises(exc.TransportSourceInvalid):  # not a text file
        FileTransport(b"2024-03-31T12:00:00.000000 7E", protocol)  # type: ignore[arg-type]
