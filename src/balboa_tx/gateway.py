#!/usr/bin/env python3

# TODO:
# - self._tasks is not ThreadSafe


"""Balboa TX - The engine (a connection to the spa's Wi-Fi module, or a packet log)."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime as dt
from typing import TYPE_CHECKING, Any, Never, TextIO

from .command import Command
from .connection_fsm import Connected, Disconnected
from .const import DEFAULT_CONNECT_TIMEOUT, DEFAULT_PORT, DEFAULT_RECONNECT_DELAY
from .packet import Packet
from .protocol import SpaProtocol, protocol_factory
from .schemas import (
    SZ_CONNECT_TIMEOUT,
    SZ_DISABLE_SENDING,
    SZ_PORT,
    SZ_RECONNECT_DELAY,
    PktLogConfigT,
)
from .transport import transport_factory

if TYPE_CHECKING:
    from .connection_fsm import _ConnectionStateT
    from .protocol import SpaProtocolT
    from .transport import SpaTransportT

_PktHandlerT = Callable[[Packet], None]


DEV_MODE = False

_LOGGER = logging.getLogger(__name__)


class Engine:
    """The engine class."""

    def __init__(
        self,
        host: str | None,
        input_file: TextIO | None = None,
        packet_log: PktLogConfigT | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        **kwargs: Any,
    ) -> None:
        if host and input_file:
            _LOGGER.warning(
                "Host (%s) specified, so file (%s) ignored",
                host,
                input_file,
            )
            input_file = None

        self._disable_sending = kwargs.pop(SZ_DISABLE_SENDING, None)
        if input_file:
            self._disable_sending = True
        elif not host:
            raise TypeError("Either a host or a input_file must be specified")

        self.host = host
        self._input_file = input_file

        self._port: int = kwargs.pop(SZ_PORT, DEFAULT_PORT)
        self._connect_timeout: float = kwargs.pop(
            SZ_CONNECT_TIMEOUT, DEFAULT_CONNECT_TIMEOUT
        )
        self._reconnect_delay: float = kwargs.pop(
            SZ_RECONNECT_DELAY, DEFAULT_RECONNECT_DELAY
        )

        self._packet_log: PktLogConfigT | dict[Never, Never] = packet_log or {}
        self._loop = loop or asyncio.get_running_loop()

        self._protocol: SpaProtocolT = None  # type: ignore[assignment]
        self._transport: SpaTransportT | None = None  # None until self.start()

        self._prev_pkt: Packet | None = None
        self._this_pkt: Packet | None = None

        self._tasks: list[asyncio.Task] = []  # type: ignore[type-arg]

        self._set_pkt_handler(self._pkt_handler)  # sets self._protocol

    def __str__(self) -> str:
        if not self.host:
            return f"Engine(input_file={self._input_file})"
        return f"{self.host}:{self._port}"

    def _dt_now(self) -> dt:
        if self._transport and hasattr(self._transport, "_dt_now"):
            return self._transport._dt_now()  # type: ignore[no-any-return]
        return dt.now()

    def _set_pkt_handler(self, pkt_handler: _PktHandlerT) -> None:
        """Create an appropriate protocol for the packet source (transport).

        The corresponding transport will be created later.
        """

        self._protocol = protocol_factory(
            pkt_handler,
            connect_fnc=self._connect if self.host else None,
            disable_sending=self._disable_sending,
            reconnect_delay=self._reconnect_delay,
        )

        if isinstance(self._protocol, SpaProtocol):
            self._protocol._context.add_handler(self._connection_state_changed)

    def add_pkt_handler(self, pkt_handler: _PktHandlerT, /) -> Callable[[], None]:
        """Add a Packet handler, and return a callback to remove it."""
        return self._protocol.add_handler(pkt_handler)

    async def _connect(self) -> None:
        """Create a TCP transport (connection) to the spa.

        May: raise TransportError.
        """

        self._transport = await transport_factory(
            self._protocol,
            host=self.host,
            port=self._port,
            connect_timeout=self._connect_timeout,
            loop=self._loop,
        )

    async def start(self) -> None:
        """Create a suitable transport for the specified packet source.

        If the source is a packet log, it will be replayed to completion. Otherwise,
        the connection will be (re)established in the background, as required.
        """

        if isinstance(self._protocol, SpaProtocol):
            self._protocol._context.start()
            return

        self._transport = await transport_factory(
            self._protocol, packet_log=self._input_file, loop=self._loop
        )

        await self._protocol.wait_for_connection_made()
        await self._protocol.wait_for_connection_lost(timeout=None)

    async def stop(self) -> None:
        """Stop (re)connecting, close the transport and cancel all tasks."""

        async def cancel_all_tasks() -> None:  # TODO: needs a lock?
            _ = [t.cancel() for t in self._tasks if not t.done()]
            try:
                if tasks := [t for t in self._tasks if not t.done()]:
                    await asyncio.gather(*tasks)
            except asyncio.CancelledError:
                pass

        if isinstance(self._protocol, SpaProtocol):
            self._protocol._context.stop()

        await cancel_all_tasks()

        if self._transport and self._protocol.is_connected:
            self._transport.close()
            await self._protocol.wait_for_connection_lost()

        return None

    async def wait_for_connection_made(self, timeout: float = 1) -> None:
        """Wait until the transport is connected (raise TransportError if it isn't)."""
        await self._protocol.wait_for_connection_made(timeout=timeout)

    def has_good_connection(self) -> bool:
        """Return True if there is a usable connection (to the spa, or a log file)."""

        if isinstance(self._protocol, SpaProtocol):
            return self._protocol._context.is_connected and self._protocol.is_connected
        return self._protocol.is_connected

    def add_task(self, task: asyncio.Task[Any]) -> None:  # TODO: needs a lock?
        # keep a track of tasks, so we can tidy-up
        self._tasks = [t for t in self._tasks if not t.done()]
        self._tasks.append(task)

    async def async_send_cmd(self, cmd: Command, /) -> None:
        """Send a Command (there is no reply, nor echo, to wait for).

        Will raise:
            TransportNotConnected: there is no connection to the spa
            ProtocolError:         sending is disabled (e.g. a packet log)
        """

        await self._protocol.send_cmd(cmd)

    def _connection_state_changed(self, state: _ConnectionStateT) -> None:
        if isinstance(state, Connected):
            self._connection_made()
        elif isinstance(state, Disconnected):
            self._connection_lost()

    def _connection_made(self) -> None:
        """Invoked when the connection with the spa has been (re-)established."""
        _LOGGER.debug("%s: Connection made", self)

    def _connection_lost(self) -> None:
        """Invoked when the connection with the spa has been lost (or closed)."""
        _LOGGER.debug("%s: Connection lost", self)

    def _pkt_handler(self, pkt: Packet) -> None:
        self._this_pkt, self._prev_pkt = pkt, self._this_pkt
