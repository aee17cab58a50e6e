#!/usr/bin/env python3
"""Balboa TX - a Balboa spa protocol decoder & client."""

from __future__ import annotations

import asyncio
from functools import partial
from typing import TYPE_CHECKING, Any

from .command import Command
from .connection_fsm import Connected, Connecting, ConnectionContext, Disconnected
from .const import (
    AUX_ITEMS,
    DEFAULT_PORT,
    LIGHT_ITEMS,
    PUMP_ITEMS,
    UNKNOWN_TEMP,
    Code,
    LockAction,
    ToggleItem,
)
from .frame import Frame, FrameBuffer, checksum, crc8, decode
from .gateway import Engine
from .logger import set_pkt_logging
from .packet import PKT_LOGGER, Packet
from .protocol import ReadProtocol, SpaProtocol, SpaProtocolT, protocol_factory
from .transport import FileTransport, SpaTransportT, transport_factory
from .version import VERSION

__all__ = [
    "VERSION",
    "Engine",
    #
    "AUX_ITEMS",
    "DEFAULT_PORT",
    "LIGHT_ITEMS",
    "PUMP_ITEMS",
    "UNKNOWN_TEMP",
    #
    "Code",
    "LockAction",
    "ToggleItem",
    #
    "Command",
    "Frame",
    "FrameBuffer",
    "Packet",
    "checksum",
    "crc8",
    "decode",
    #
    "Connected",
    "Connecting",
    "ConnectionContext",
    "Disconnected",
    #
    "ReadProtocol",
    "SpaProtocol",
    "SpaProtocolT",
    "protocol_factory",
    #
    "FileTransport",
    "SpaTransportT",
    "transport_factory",
    #
    "set_pkt_logging_config",
]


if TYPE_CHECKING:
    from logging import Logger


async def set_pkt_logging_config(**config: Any) -> Logger:
    """Set up packet logging to a file and/or the console.

    Runs in an executor, as opening the packet log file is a blocking call.

    :param config: if file_name is included, opens packet_log file
    :return: a logging.Logger
    """
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, partial(set_pkt_logging, PKT_LOGGER, **config))
    return PKT_LOGGER
