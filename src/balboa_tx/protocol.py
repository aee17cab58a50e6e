#!/usr/bin/env python3
"""Balboa TX - Balboa spa compatible packet protocol."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime as dt
from typing import TYPE_CHECKING, Final, TypeAlias

from . import exceptions as exc
from .command import Command
from .connection_fsm import ConnectionContext
from .const import DEFAULT_RECONNECT_DELAY
from .frame import FrameBuffer
from .packet import Packet
from .typing import ConnectFncT, ExceptionT, PktHandlerT

if TYPE_CHECKING:
    from .transport import SpaTransportT


#
# NOTE: All debug flags should be False for deployment to end-users
_DBG_FORCE_LOG_PACKETS: Final[bool] = False

_LOGGER = logging.getLogger(__name__)


class _BaseProtocol(asyncio.Protocol):
    """Base class for Balboa spa protocols."""

    def __init__(self, pkt_handler: PktHandlerT | None) -> None:
        self._pkt_handler = pkt_handler
        self._pkt_handlers: list[PktHandlerT] = []

        self._transport: SpaTransportT = None  # type: ignore[assignment]
        self._loop = asyncio.get_running_loop()

        self._pause_writing = False
        self._wait_connection_lost: asyncio.Future[None] | None = None
        self._wait_connection_made: asyncio.Future[SpaTransportT] = (
            self._loop.create_future()
        )

        self._this_pkt: Packet | None = None
        self._prev_pkt: Packet | None = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"

    @property
    def is_connected(self) -> bool:
        """Return True if there is a usable Transport."""
        return self._transport is not None and not self._transport.is_closing()

    def add_handler(self, pkt_handler: PktHandlerT, /) -> Callable[[], None]:
        """Add a Packet handler to the list of such callbacks.

        Returns a callback that can be used to subsequently remove the Packet handler.
        """

        def del_handler() -> None:
            if pkt_handler in self._pkt_handlers:
                self._pkt_handlers.remove(pkt_handler)

        if pkt_handler not in self._pkt_handlers:
            self._pkt_handlers.append(pkt_handler)

        return del_handler

    def connection_made(self, transport: SpaTransportT) -> None:  # type: ignore[override]
        """Called when the connection to the Transport is established.

        The argument is the transport representing the pipe connection. To receive data,
        wait for pkt_received() calls. When the connection is closed, connection_lost()
        is called.
        """

        if self._wait_connection_made.done():
            return

        self._wait_connection_lost = self._loop.create_future()
        self._wait_connection_made.set_result(transport)
        self._transport = transport

    async def wait_for_connection_made(self, timeout: float = 1) -> SpaTransportT:
        """A courtesy function to wait until connection_made() has been invoked.

        Will raise TransportError if isn't connected within timeout seconds.
        """

        try:
            return await asyncio.wait_for(
                asyncio.shield(self._wait_connection_made), timeout
            )
        except TimeoutError as err:
            raise exc.TransportError(
                f"Transport did not bind to Protocol within {timeout} secs"
            ) from err

    def connection_lost(self, err: ExceptionT | None) -> None:  # type: ignore[override]
        """Called when the connection to the Transport is lost or closed.

        The argument is an exception object or None (the latter meaning a regular EOF is
        received or the connection was aborted or closed).
        """

        self._transport = None  # type: ignore[assignment]

        if self._wait_connection_lost is None or self._wait_connection_lost.done():
            return

        self._wait_connection_made = self._loop.create_future()
        if err:
            self._wait_connection_lost.set_exception(err)  # type: ignore[arg-type]
        else:
            self._wait_connection_lost.set_result(None)

    async def wait_for_connection_lost(
        self, timeout: float | None = 1
    ) -> ExceptionT | None:
        """A courtesy function to wait until connection_lost() has been invoked.

        Includes scenarios where neither connection_made() nor connection_lost() were
        invoked.

        Will raise TransportError if isn't disconnect within timeout seconds.
        """

        if not self._wait_connection_lost:
            return None

        try:
            return await asyncio.wait_for(self._wait_connection_lost, timeout)  # type: ignore[return-value]
        except TimeoutError as err:
            raise exc.TransportError(
                f"Transport did not unbind from Protocol within {timeout} secs"
            ) from err

    def pause_writing(self) -> None:
        """Called when the transport's buffer goes over the high-water mark."""
        self._pause_writing = True

    def resume_writing(self) -> None:
        """Called when the transport's buffer drains below the low-water mark."""
        self._pause_writing = False

    async def send_cmd(self, cmd: Command, /) -> None:
        """This is the wrapper for self._send_cmd(cmd).

        The spa does not acknowledge commands, so there is nothing to wait for.
        """

        if _DBG_FORCE_LOG_PACKETS:
            _LOGGER.warning("Sending: %s", cmd)
        else:
            _LOGGER.debug("Sending: %s", cmd)

        if self._pause_writing:
            raise exc.ProtocolError("The Protocol is currently read-only/paused")

        self._send_cmd(cmd)

    def _send_cmd(self, cmd: Command, /) -> None:
        raise NotImplementedError(f"{self}: Unexpected error")

    def pkt_received(self, pkt: Packet) -> None:
        """A wrapper for self._pkt_received(pkt)."""

        if _DBG_FORCE_LOG_PACKETS:
            _LOGGER.warning("Recv'd: %s", pkt)
        else:
            _LOGGER.debug("Recv'd: %s", pkt)

        self._pkt_received(pkt)

    def _pkt_received(self, pkt: Packet) -> None:
        """Pass any valid Packets to the client's callback(s).

        Also maintain _prev_pkt, _this_pkt attrs.
        """

        self._this_pkt, self._prev_pkt = pkt, self._this_pkt

        if self._pkt_handler:
            self._loop.call_soon_threadsafe(self._pkt_handler, pkt)
        for callback in self._pkt_handlers:
            self._loop.call_soon_threadsafe(callback, pkt)


class ReadProtocol(_BaseProtocol):
    """A protocol that can only receive Packets (e.g. from a packet log)."""

    def __init__(self, pkt_handler: PktHandlerT | None) -> None:
        super().__init__(pkt_handler)

        self._pause_writing = True

    def resume_writing(self) -> None:
        raise NotImplementedError(f"{self}: The chosen Protocol is Read-Only")

    async def send_cmd(self, cmd: Command, /) -> None:
        """Raise an exception as the Protocol cannot send Commands."""
        raise exc.ProtocolError(f"{cmd._hdr}: < this Protocol is Read-Only")


class SpaProtocol(_BaseProtocol):
    """A protocol that can receive Packets and send Commands over a TCP stream.

    The byte stream is re-assembled into frames, and a FSM (re)connects as required.
    """

    def __init__(
        self,
        pkt_handler: PktHandlerT | None,
        /,
        *,
        connect_fnc: ConnectFncT | None = None,
        disable_sending: bool | None = False,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
    ) -> None:
        super().__init__(pkt_handler)

        self._pause_writing = bool(disable_sending)  # i.e. monitor-only

        self._buffer = FrameBuffer()
        self._context = ConnectionContext(
            self, connect_fnc, reconnect_delay=reconnect_delay
        )

    def __repr__(self) -> str:
        cls = self._context.state.__class__.__name__
        return f"SpaProtocol({cls}, len(buffer)={len(self._buffer)})"

    def connection_made(self, transport: SpaTransportT) -> None:  # type: ignore[override]
        """Discard any stale partial frame, and inform the FSM."""

        self._buffer.clear()
        super().connection_made(transport)

        _LOGGER.info("%s: Connected to %s", self, transport.get_extra_info("peername"))
        self._context.connection_made()

    def connection_lost(self, err: ExceptionT | None) -> None:  # type: ignore[override]
        """Inform the FSM that the connection with the Transport has been lost."""

        super().connection_lost(err)

        if err:
            _LOGGER.warning("%s: Connection lost: %s", self, err)
        else:
            _LOGGER.info("%s: Connection closed", self)
        self._context.connection_lost(err)

    def data_received(self, data: bytes) -> None:
        """Re-assemble the byte stream into frames, and process them as Packets."""

        dtm = dt.now()

        for frame in self._buffer.feed(data):
            try:
                pkt = Packet.from_port(dtm, frame)
            except exc.PacketInvalid:  # already logged
                continue
            self.pkt_received(pkt)

    def eof_received(self) -> bool | None:
        """Let the transport close itself (i.e. no half-open connections)."""
        return None

    def _send_cmd(self, cmd: Command, /) -> None:
        """Write the Command to the Transport.

        Will raise TransportNotConnected if there is no (usable) connection.
        """

        if not self.is_connected:
            raise exc.TransportNotConnected(f"{cmd._hdr}: < not connected to the spa")

        self._transport.write(bytes(cmd))  # type: ignore[union-attr]


SpaProtocolT: TypeAlias = SpaProtocol | ReadProtocol


def protocol_factory(
    pkt_handler: PktHandlerT | None,
    /,
    *,
    connect_fnc: ConnectFncT | None = None,
    disable_sending: bool | None = False,
    reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
) -> SpaProtocolT:
    """Create and return a Balboa-specific async packet Protocol."""

    if connect_fnc is None:  # a static packet source, e.g. a packet log
        _LOGGER.debug("ReadProtocol: Sending has been disabled")
        return ReadProtocol(pkt_handler)

    if disable_sending:
        _LOGGER.debug("SpaProtocol: Sending has been disabled")

    return SpaProtocol(
        pkt_handler,
        connect_fnc=connect_fnc,
        disable_sending=disable_sending,
        reconnect_delay=reconnect_delay,
    )
