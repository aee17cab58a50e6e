#!/usr/bin/env python3
"""Balboa TX - Balboa spa connection finite state machine.

The spa (its Wi-Fi module) is a TCP server that silently drops connections from time
to time. This FSM keeps (re)connecting, after a backoff, until it is stopped:

    Disconnected --start()--> Connecting --connection_made()--> Connected
         ^                        |                                 |
         +--- connection_failed --+---------- connection_lost ------+
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Final, TypeAlias

from . import exceptions as exc
from .const import DEFAULT_RECONNECT_DELAY

if TYPE_CHECKING:
    from .protocol import SpaProtocol
    from .typing import ConnectFncT, ExceptionT

#
# NOTE: All debug flags should be False for deployment to end-users
_DBG_MAINTAIN_STATE_CHAIN: Final[bool] = False  # maintain Context._prev_state

_LOGGER = logging.getLogger(__name__)


StateHandlerT: TypeAlias = Callable[["_ConnectionStateT"], None]


class ConnectionContext:
    """The context of the connection FSM (there is one per Protocol)."""

    def __init__(
        self,
        protocol: SpaProtocol,
        connect_fnc: ConnectFncT | None = None,
        /,
        *,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
    ) -> None:
        self._protocol = protocol
        self._connect_fnc = connect_fnc
        self.reconnect_delay = reconnect_delay

        self._loop = protocol._loop

        self._connect_task: asyncio.Task[None] | None = None
        self._reconnect_timer: asyncio.TimerHandle | None = None
        self._is_stopping: bool = False

        self._state_handlers: list[StateHandlerT] = []
        self._state: _ConnectionStateT = None  # type: ignore[assignment]

        self.set_state(Disconnected)

    def __repr__(self) -> str:
        msg = f"<ConnectionContext state={self._state.__class__.__name__}"
        if self._reconnect_timer is not None:
            return msg + ", reconnect=pending>"
        return msg + ">"

    @property
    def state(self) -> _ConnectionStateT:
        return self._state

    @property
    def is_connected(self) -> bool:
        return isinstance(self._state, Connected)

    @property
    def reconnect_pending(self) -> bool:
        """Return True if a reconnection attempt has been scheduled."""
        return self._reconnect_timer is not None

    def add_handler(self, state_handler: StateHandlerT, /) -> Callable[[], None]:
        """Add a callback, to be invoked whenever the state changes.

        Returns a callback that can be used to subsequently remove the state handler.
        """

        def del_handler() -> None:
            if state_handler in self._state_handlers:
                self._state_handlers.remove(state_handler)

        if state_handler not in self._state_handlers:
            self._state_handlers.append(state_handler)

        return del_handler

    def set_state(
        self, state_class: _ConnectionStateClassT, err: ExceptionT | None = None
    ) -> None:
        """Transition to a new state, and inform the handlers (if it has changed)."""

        prev_state = self._state

        if isinstance(prev_state, state_class):
            return

        _LOGGER.debug("BEFORE = %s", self)
        self._state = state_class(self)

        if _DBG_MAINTAIN_STATE_CHAIN:  # for debugging
            setattr(self._state, "_prev_state", prev_state)  # noqa: B010

        _LOGGER.debug("AFTER. = %s: err=%s", self, err)

        if prev_state is None:  # initial state
            return

        for callback in self._state_handlers:
            self._loop.call_soon_threadsafe(callback, self._state)

    def start(self) -> None:
        """Start connecting (if not already connected/connecting)."""

        self._is_stopping = False
        self._state.start()

    def stop(self) -> None:
        """Stop connecting, and cancel any pending reconnection."""

        self._is_stopping = True

        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

        if self._connect_task and not self._connect_task.done():
            self._connect_task.cancel()
        self._connect_task = None

        self.set_state(Disconnected)

    def connection_made(self) -> None:
        self._state.connection_made()

    def connection_lost(self, err: ExceptionT | None) -> None:
        self._state.connection_lost(err)

    def _connection_failed(self, err: ExceptionT | None) -> None:
        self._state.connection_failed(err)

    def _spawn_connect(self) -> None:
        """Create a task to open the connection (via the connect function)."""

        async def connect() -> None:
            assert self._connect_fnc is not None  # mypy

            try:
                await self._connect_fnc()
            except exc.TransportError as err:
                _LOGGER.warning("%s: Failed to connect: %s", self, err)
                self._connection_failed(err)  # type: ignore[arg-type]

        if self._connect_fnc is None:
            raise exc.ConnectionFsmError(f"{self}: There is no connect function")

        self._connect_task = self._loop.create_task(
            connect(), name="ConnectionContext.connect()"
        )

    def _schedule_reconnect(self) -> None:
        """Schedule a reconnection attempt, unless one is pending (or stopping)."""

        def reconnect() -> None:
            self._reconnect_timer = None
            if not self._is_stopping:
                self._state.start()

        if self._is_stopping:
            return

        if self._reconnect_timer is not None:  # only ever one pending reconnect
            _LOGGER.debug("%s: A reconnect is already pending", self)
            return

        _LOGGER.info("%s: Will reconnect in %s secs", self, self.reconnect_delay)
        self._reconnect_timer = self._loop.call_later(self.reconnect_delay, reconnect)


#######################################################################################


class ConnectionStateBase:
    def __init__(self, context: ConnectionContext) -> None:
        self._context = context

    def __repr__(self) -> str:
        return f"<ConnectionState state={self.__class__.__name__}>"

    def start(self) -> None:  # For all states except Disconnected
        """Do nothing, as (except for Disconnected) we're already connecting."""
        _LOGGER.debug("%s: Ignoring start(), as not disconnected", self._context)

    def connection_made(self) -> None:  # For all states except Connecting
        """Do nothing, other than note that this was unexpected."""
        _LOGGER.debug("%s: Unexpected connection_made()", self._context)

    def connection_lost(self, err: ExceptionT | None) -> None:
        """Transition to Disconnected, and schedule a reconnect."""

        self._context.set_state(Disconnected, err=err)
        self._context._schedule_reconnect()

    def connection_failed(self, err: ExceptionT | None) -> None:  # Only if Connecting
        raise exc.ConnectionFsmError(
            f"Invalid state to fail a connection: {self._context}"
        )


class Disconnected(ConnectionStateBase):
    """There is no connection with the spa (there may be a reconnect pending)."""

    def start(self) -> None:
        """Transition to Connecting, and attempt to connect."""

        self._context.set_state(Connecting)
        self._context._spawn_connect()

    def connection_lost(self, err: ExceptionT | None) -> None:
        """Do nothing, as we're already disconnected."""
        pass


class Connecting(ConnectionStateBase):
    """Attempting to connect with the spa."""

    def connection_made(self) -> None:
        """Transition to Connected."""
        self._context.set_state(Connected)

    def connection_failed(self, err: ExceptionT | None) -> None:
        """Transition to Disconnected, and schedule a reconnect."""

        self._context.set_state(Disconnected, err=err)
        self._context._schedule_reconnect()


class Connected(ConnectionStateBase):
    """There is a connection with the spa (it may not be healthy)."""


#######################################################################################


_ConnectionStateT: TypeAlias = Disconnected | Connecting | Connected

_ConnectionStateClassT: TypeAlias = (
    type[Disconnected] | type[Connecting] | type[Connected]
)
