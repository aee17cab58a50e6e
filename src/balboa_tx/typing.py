#!/usr/bin/env python3
"""Balboa TX - Typing for SpaProtocol & SpaTransport."""

from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

from .packet import Packet

ExceptionT = TypeVar("ExceptionT", bound=type[Exception])
PktHandlerT = Callable[[Packet], None]
ConnectFncT = Callable[[], Coroutine[Any, Any, Any]]
