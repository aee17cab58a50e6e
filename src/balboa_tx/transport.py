#!/usr/bin/env python3
"""Balboa TX - Balboa spa compatible packet transport.

Operates at the pkt layer of: app - msg - pkt - socket

The spa's Wi-Fi module accepts a single, plain TCP connection on port 4257. For
testing/analysis, frames can instead be replayed from a packet log, e.g.:
  2024-03-31T12:00:00.123456 7E050ABF04777E
"""

from __future__ import annotations

import asyncio
import functools
import logging
from datetime import datetime as dt
from io import TextIOBase
from typing import TYPE_CHECKING, Any, Final, TextIO, TypeAlias

from . import exceptions as exc
from .const import DEFAULT_CONNECT_TIMEOUT, DEFAULT_PORT
from .packet import Packet

if TYPE_CHECKING:
    from .protocol import SpaProtocolT


SZ_READER_TASK: Final = "reader_task"

#
# NOTE: All debug flags should be False for deployment to end-users
_DBG_FORCE_FRAME_LOGGING: Final[bool] = False

_LOGGER = logging.getLogger(__name__)


class _ReadTransport(asyncio.ReadTransport):
    """Interface for read-only transports."""

    _protocol: SpaProtocolT = None  # type: ignore[assignment]
    _loop: asyncio.AbstractEventLoop

    def __init__(
        self,
        protocol: SpaProtocolT,
        loop: asyncio.AbstractEventLoop | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(extra=extra)

        self._protocol = protocol
        self._loop = loop or asyncio.get_running_loop()

        self._closing: bool = False
        self._reading: bool = False

        self._this_pkt: Packet | None = None
        self._prev_pkt: Packet | None = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._protocol})"

    def _dt_now(self) -> dt:
        """Return a precise datetime, using last packet's dtm field."""

        try:
            return self._this_pkt.dtm  # type: ignore[union-attr]
        except AttributeError:
            return dt(1970, 1, 1, 1, 0)

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def get_extra_info(self, name: str, default: Any = None) -> Any:
        return self._extra.get(name, default)  # type: ignore[attr-defined]

    def is_closing(self) -> bool:
        """Return True if the transport is closing or has closed."""
        return self._closing

    def _close(self, err: BaseException | None = None) -> None:
        """Inform the protocol that this transport has closed."""

        if self._closing:
            return
        self._closing = True

        self.loop.call_soon(functools.partial(self._protocol.connection_lost, err))

    def close(self) -> None:
        """Close the transport gracefully."""
        self._close()

    def is_reading(self) -> bool:
        """Return True if the transport is receiving."""
        return self._reading

    def pause_reading(self) -> None:
        """Pause the receiving end (no data to protocol.pkt_received())."""
        self._reading = False

    def resume_reading(self) -> None:
        """Resume the receiving end."""
        self._reading = True

    def _make_connection(self) -> None:
        self.loop.call_soon(functools.partial(self._protocol.connection_made, self))

    # NOTE: all transports should call this method when they read a log line
    def _frame_read(self, dtm_str: str, frame: str) -> None:
        """Make a Packet from the Frame and process it."""

        if not frame.strip():
            return

        try:
            pkt = Packet.from_file(dtm_str, frame)

        except ValueError as err:  # VE from dt.fromisoformat() or falsey packet
            _LOGGER.debug("%s < PacketInvalid(%s)", frame, err)
            return

        except exc.PacketInvalid as err:
            _LOGGER.warning("%s < PacketInvalid(%s)", frame, err)
            return

        self._pkt_read(pkt)

    # NOTE: all protocol callbacks should be invoked from here
    def _pkt_read(self, pkt: Packet) -> None:
        """Pass any valid Packets to the protocol's callback (_prev_pkt, _this_pkt)."""

        self._this_pkt, self._prev_pkt = pkt, self._this_pkt

        if self._closing is True:
            raise exc.TransportError("Transport is closing or has closed")

        if _DBG_FORCE_FRAME_LOGGING:
            _LOGGER.warning("Rcvd: %s", repr(pkt))

        self._protocol.pkt_received(pkt)

    def write(self, data: bytes) -> None:  # type: ignore[override]
        raise exc.TransportError("This transport is read only")


class FileTransport(_ReadTransport):
    """Receive packets from a read-only packet log (e.g. as written via packet_log)."""

    def __init__(
        self,
        pkt_source: TextIO,
        protocol: SpaProtocolT,
        loop: asyncio.AbstractEventLoop | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(protocol, loop=loop, extra=extra)

        if not isinstance(pkt_source, TextIOBase):
            raise exc.TransportSourceInvalid(
                f"Packet source is not a text file: {pkt_source!r}"
            )
        self._pkt_source = pkt_source

        self._extra[SZ_READER_TASK] = self._reader_task = self._loop.create_task(  # type: ignore[attr-defined]
            self._start_reader(), name="FileTransport._start_reader()"
        )

        self._make_connection()

    async def _start_reader(self) -> None:
        self._reading = True
        try:
            await self._reader()
        except exc.SpaException as err:
            self._close(err)
        else:
            self._close()

    # NOTE: self._frame_read() invoked from here
    async def _reader(self) -> None:
        """Replay the packet log, one line at a time."""

        await asyncio.sleep(0)  # let connection_made() be invoked first

        for line in self._pkt_source:
            while not self._reading:
                await asyncio.sleep(0.001)

            # annotated logs can have blank lines, and comment lines
            if (line := line.strip()) and not line.startswith("#"):
                dtm_str, _, pkt_line = line.partition(" ")
                self._frame_read(dtm_str, pkt_line)
            await asyncio.sleep(0)  # NOTE: big performance penalty if delay >0

    def _close(self, err: BaseException | None = None) -> None:
        """Close the transport (cancel any outstanding tasks)."""

        super()._close(err)

        if self._reader_task and asyncio.current_task() is not self._reader_task:
            self._reader_task.cancel()


SpaTransportT: TypeAlias = FileTransport | asyncio.Transport


async def _create_tcp_connection(
    protocol: SpaProtocolT,
    host: str,
    port: int,
    *,
    connect_timeout: float,
    loop: asyncio.AbstractEventLoop,
) -> asyncio.Transport:
    """Open a TCP connection to the spa, bound to the protocol.

    May: raise TransportError("Unable to connect...")
    """

    try:
        transport, _ = await asyncio.wait_for(
            loop.create_connection(lambda: protocol, host, port), connect_timeout
        )
    except TimeoutError as err:
        raise exc.TransportError(
            f"Unable to connect to {host}:{port} within {connect_timeout} secs"
        ) from err
    except OSError as err:  # incl. ConnectionRefusedError, socket.gaierror
        raise exc.TransportError(f"Unable to connect to {host}:{port}: {err}") from err

    return transport


async def transport_factory(
    protocol: SpaProtocolT,
    /,
    *,
    host: str | None = None,
    port: int = DEFAULT_PORT,
    packet_log: TextIO | None = None,
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    extra: dict[str, Any] | None = None,
    loop: asyncio.AbstractEventLoop | None = None,
) -> SpaTransportT:
    """Create and return a Balboa-specific async packet Transport.

    The packet source is either a spa (host) or a packet log to replay, not both.
    """

    if (host is None) == (packet_log is None):
        raise exc.TransportSourceInvalid(
            "Packet source must be exactly one of: packet_log, host"
        )

    loop = loop or asyncio.get_running_loop()

    if packet_log is not None:
        return FileTransport(packet_log, protocol, loop=loop, extra=extra)

    assert host is not None  # mypy check

    return await _create_tcp_connection(
        protocol, host, port, connect_timeout=connect_timeout, loop=loop
    )
