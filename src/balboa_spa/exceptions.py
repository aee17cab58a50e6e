#!/usr/bin/env python3
"""Balboa spa - exceptions above the packet/protocol/transport layer."""

from __future__ import annotations

from balboa_tx.exceptions import (
    PacketInvalid as PacketInvalid,
    PacketPayloadInvalid as PacketPayloadInvalid,
    ProtocolError as ProtocolError,
    SpaException as SpaException,
    TransportError as TransportError,
)


class _SpaUpperError(SpaException):
    """A failure in the upper layer (state model, command synthesis, client)."""


########################################################################################
# Errors above the protocol/transport layer, incl. command synthesis


class SpaCommandRejected(_SpaUpperError):
    """The request was refused before any frame was sent."""


class SpaComponentAbsent(SpaCommandRejected):
    """The spa does not have the component (as per its capabilities)."""

    HINT = "set ignore_capabilities if the capabilities are misreported"


class SpaValueInvalid(SpaCommandRejected):
    """The requested value is out of range for the component (or the spa)."""


########################################################################################
# Errors above the protocol/transport layer, incl. connection state


class SpaNotConnected(_SpaUpperError):
    """There is no (good) connection to the spa."""

    HINT = "wait for the connection to be (re-)established"
