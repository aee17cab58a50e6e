#!/usr/bin/env python3
"""Balboa TX - exceptions within the frame/protocol/transport layer."""

from __future__ import annotations


class _SpaBaseException(Exception):
    """Base class for all balboa_tx exceptions."""

    pass


class SpaException(_SpaBaseException):
    """Base class for all balboa_tx exceptions."""

    HINT: None | str = None

    def __init__(self, *args: object):
        super().__init__(*args)
        self.message: str | None = args[0] if args else None  # type: ignore[assignment]

    def __str__(self) -> str:
        if self.message and self.HINT:
            return f"{self.message} (hint: {self.HINT})"
        if self.message:
            return self.message
        if self.HINT:
            return f"Hint: {self.HINT}"
        return ""


class _SpaLowerError(SpaException):
    """A failure in the lower layer (codec, protocol, transport, socket)."""


########################################################################################
# Errors at/below the protocol/transport layer


class ProtocolError(_SpaLowerError):
    """An error occurred when sending, receiving or exchanging frames."""


class ConnectionFsmError(ProtocolError):
    """The connection FSM was/became inconsistent (this shouldn't happen)."""


class TransportError(ProtocolError):
    """An error when sending or receiving frames (bytes)."""


class TransportNotConnected(TransportError):
    """The transport is not (currently) connected to the spa."""

    HINT = "wait for the connection to be (re-)established"


class TransportSourceInvalid(TransportError):
    """The source of frames is not a valid type/configuration."""


########################################################################################
# Errors at/below the protocol/transport layer, incl. frame processing


class ParserBaseError(_SpaLowerError):
    """The frame is corrupt/not internally consistent, or cannot be parsed."""


class PacketInvalid(ParserBaseError):
    """The frame is corrupt/not internally consistent."""


class PacketChecksumInvalid(PacketInvalid):
    """The frame's checksum does not match its contents."""


class PacketPayloadInvalid(PacketInvalid):
    """The frame's payload is inconsistent with its type code."""


class ParserError(ParserBaseError):
    """The frame cannot be parsed without error."""


class CommandInvalid(ParserError):
    """The command is corrupt/not internally consistent."""
