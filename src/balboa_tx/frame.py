#!/usr/bin/env python3
"""Balboa TX - a Balboa spa protocol decoder & client.

Provide the base class for commands (constructed/sent frames) and packets.

A frame is: 7E <len> <code (3 bytes)> <payload> <checksum> 7E, where len counts
itself, the code, the payload & the checksum (but not the sentinels).
"""

from __future__ import annotations

import logging
from typing import Final

from . import exceptions as exc
from .const import (
    CRC_INIT,
    CRC_POLY,
    CRC_XOR_OUT,
    FRAME_OVERHEAD,
    FRAME_SENTINEL,
    MAX_FRAME_LENGTH,
    Code,
)

_LOGGER = logging.getLogger(__name__)


_CODE_BY_VALUE: Final[dict[str, Code]] = {c.value: c for c in Code}


def crc8(data: bytes | bytearray, init: int = CRC_INIT) -> int:
    """Return the CRC-8 (MSB first, poly 0x07) of the data, using an initial value."""

    crc = init
    for byte in data:
        crc ^= byte
        for _ in range(8):
            crc = ((crc << 1) ^ CRC_POLY) & 0xFF if crc & 0x80 else (crc << 1) & 0xFF
    return crc


def checksum(data: bytes | bytearray) -> int:
    """Return the frame checksum of data (i.e. of len ++ code ++ payload)."""
    return crc8(data) ^ CRC_XOR_OUT


def _code_from_bytes(code: bytes) -> Code | str:
    value = code.hex().upper()
    return _CODE_BY_VALUE.get(value, value)


def _code_to_bytes(code: Code | str | bytes) -> bytes:
    if isinstance(code, bytes | bytearray):
        result = bytes(code)
    else:
        try:
            result = bytes.fromhex(code)
        except ValueError as err:
            raise exc.CommandInvalid(f"Bad code: not hex: {code!r}") from err
    if len(result) != 3:
        raise exc.CommandInvalid(f"Bad code: must be 3 bytes: {result.hex()}")
    return result


class Frame:
    """The Frame class - used as a base by the Command and Packet classes.

    `7E 05 0A BF 04 77 7E` (a config request)
    """

    def __init__(self, frame: bytes) -> None:
        """Create a frame from a complete, delimited byte sequence.

        Will raise PacketInvalid if it is structurally invalid. A frame with a bad
        checksum is not (yet) considered invalid, see: has_valid_checksum.
        """

        self._frame: bytes = bytes(frame)

        if len(self._frame) < FRAME_OVERHEAD + 2:
            raise exc.PacketInvalid(f"Bad frame: too short: {self._frame.hex()}")
        if self._frame[0] != FRAME_SENTINEL or self._frame[-1] != FRAME_SENTINEL:
            raise exc.PacketInvalid(f"Bad frame: no sentinel(s): {self._frame.hex()}")
        if self._frame[1] != len(self._frame) - 2:
            raise exc.PacketInvalid(
                f"Bad frame: length field ({self._frame[1]}) does not match "
                f"frame length ({len(self._frame) - 2}): {self._frame.hex()}"
            )

        self.length: int = self._frame[1]
        self.code: Code | str = _code_from_bytes(self._frame[2:5])
        self.payload: bytes = self._frame[5:-2]
        self.checksum: int = self._frame[-2]

        self._has_valid_checksum: bool = checksum(self._frame[1:-2]) == self.checksum

    def _validate(self, *, strict_checking: bool = False) -> None:
        """Validate the frame: it may be a cmd or a (response) pkt.

        Raise PacketChecksumInvalid if strict and the checksum is wrong.
        """

        if strict_checking and not self._has_valid_checksum:
            raise exc.PacketChecksumInvalid(
                f"Bad frame: checksum is {self.checksum:02X}, "
                f"expected {checksum(self._frame[1:-2]):02X}"
            )

    def __bytes__(self) -> bytes:
        return self._frame

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Frame):
            return NotImplemented
        return self._frame == other._frame

    def __hash__(self) -> int:
        return hash(self._frame)

    def __repr__(self) -> str:
        """Return an unambiguous string representation of this object."""
        return f"{self.__class__.__name__}({self._frame.hex().upper()})"

    def __str__(self) -> str:
        """Return a brief readable string representation of this object."""
        # e.g.: 0ABF22|000001
        return self._hdr

    @property
    def _hdr(self) -> str:
        return f"{self.code}|{self.payload.hex().upper()}"

    @property
    def has_valid_checksum(self) -> bool:
        return self._has_valid_checksum

    @classmethod  # generic constructor
    def from_attrs(cls, code: Code | str | bytes, payload: bytes = b"") -> Frame:
        """Create (encode) a frame from its code and payload.

        Will raise CommandInvalid if the frame would be too long.
        """

        code_ = _code_to_bytes(code)
        length = FRAME_OVERHEAD + len(payload)
        if length > MAX_FRAME_LENGTH:
            raise exc.CommandInvalid(
                f"Bad frame: payload is too long ({len(payload)} bytes)"
            )

        body = bytes((length,)) + code_ + bytes(payload)
        return cls(
            bytes((FRAME_SENTINEL,)) + body + bytes((checksum(body), FRAME_SENTINEL))
        )

    @classmethod
    def from_hex(cls, hex_str: str) -> Frame:
        """Create a frame from a hex string (whitespace is ignored)."""

        try:
            raw = bytes.fromhex("".join(hex_str.split()))
        except ValueError as err:
            raise exc.PacketInvalid(f"Bad frame: not hex: >>>{hex_str}<<<") from err
        return cls(raw)


def decode(buffer: bytes | bytearray) -> tuple[Frame | None, int]:
    """Extract the first frame from a buffer of received bytes.

    Returns a tuple of (frame, number of bytes consumed):
      - (Frame, n):   a complete frame (which may have a bad checksum)
      - (None, 0):    need more data (nothing consumed)
      - (None, n):    malformed data, n bytes should be discarded
    """

    if not buffer:
        return None, 0

    if buffer[0] != FRAME_SENTINEL:  # resync to the next sentinel
        idx = buffer.find(FRAME_SENTINEL)
        return None, len(buffer) if idx == -1 else idx

    if len(buffer) < 2:
        return None, 0

    if buffer[1] < FRAME_OVERHEAD:  # this 7E wasn't the start of a frame
        return None, 1

    total = buffer[1] + 2
    if len(buffer) < total:
        return None, 0

    if buffer[total - 1] != FRAME_SENTINEL:
        return None, 1

    return Frame(bytes(buffer[:total])), total


class FrameBuffer:
    """Accumulate received bytes and split them into frames.

    TCP has no message boundaries, so a frame may arrive in pieces, or several frames
    may arrive at once.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def clear(self) -> None:
        self._buffer.clear()

    def feed(self, data: bytes) -> list[Frame]:
        """Add the data to the buffer, and return any complete frames."""

        self._buffer.extend(data)
        frames: list[Frame] = []

        while self._buffer:
            frame, consumed = decode(self._buffer)
            if consumed == 0:  # need more data
                break

            if frame is None:
                _LOGGER.warning(
                    "%s < Malformed data (discarded)",
                    bytes(self._buffer[:consumed]).hex().upper(),
                )
            else:
                frames.append(frame)

            del self._buffer[:consumed]

        return frames
