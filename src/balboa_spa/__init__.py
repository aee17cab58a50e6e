#!/usr/bin/env python3
"""Balboa spa - a Balboa spa protocol decoder & client.

Works with (amongst others) the Wi-Fi modules (e.g. the bwa Wi-Fi module) of:
- Balboa BP series controllers
- Balboa GS series controllers (via the BWA module)
"""

from __future__ import annotations

from balboa_tx import VERSION, Command, Packet

from . import exceptions
from .capabilities import Capabilities
from .client import SpaClient
from .const import FlowState, TempUnit
from .faultlog import FaultLog, FaultLogEntry
from .interpreter import Interpretation, Interpreter, StatusBitMap
from .state import Absent, Present, SpaState, Unknown
from .synthesis import CommandSynthesizer

__all__ = [
    "VERSION",
    "SpaClient",
    "exceptions",
    #
    "Command",
    "Packet",
    #
    "Capabilities",
    "CommandSynthesizer",
    "FaultLog",
    "FaultLogEntry",
    "Interpretation",
    "Interpreter",
    "SpaState",
    "StatusBitMap",
    #
    "Absent",
    "Present",
    "Unknown",
    #
    "FlowState",
    "TempUnit",
]
