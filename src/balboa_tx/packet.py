#!/usr/bin/env python3
"""Balboa TX - a Balboa spa protocol decoder & client.

Decode/process a packet (a frame that was received).
"""

from __future__ import annotations

import logging
from datetime import datetime as dt
from typing import Any

from . import exceptions as exc
from .frame import Frame

PKT_LOGGER = logging.getLogger(f"{__name__}_log")  # see: set_pkt_logging()


class Packet(Frame):
    """The Packet class (frames that were received); will log all packets.

    They have a datetime (when received) and other meta-fields.
    """

    _dtm: dt

    def __init__(self, dtm: dt, frame: bytes, **kwargs: Any) -> None:
        """Create a packet from a complete frame.

        Will raise PacketInvalid if it is structurally invalid, but not if (merely) the
        checksum is wrong: such packets are logged as such, and processed regardless.
        """

        self._dtm = dtm

        self.comment: str = kwargs.get("comment", "")
        self.error_text: str = kwargs.get("err_msg", "")

        try:
            super().__init__(frame)
        except exc.PacketInvalid as err:
            PKT_LOGGER.warning(
                "%s", err, extra={"_frame": bytes(frame).hex().upper(), "_dtm": dtm}
            )
            raise

        self._validate(strict_checking=False)

    def _validate(self, *, strict_checking: bool = False) -> None:
        """Validate the packet, and log it to the packet log.

        Raise an exception PacketInvalid (PacketChecksumInvalid) if it is not valid.
        """

        extra = {
            "_frame": bytes(self).hex().upper(),
            "_dtm": self._dtm,
            "comment": self.comment,
            "error_text": self.error_text,
        }

        try:
            super()._validate(strict_checking=True)
        except exc.PacketChecksumInvalid as err:
            PKT_LOGGER.warning("%s", err, extra=extra)  # still a (flawed) packet.log line
            if strict_checking:
                raise
            return

        PKT_LOGGER.info("", extra=extra)  # the packet.log line

    def __repr__(self) -> str:
        """Return an unambiguous string representation of this object."""
        # e.g.: 2024-01-01T12:00:00.000000 7E050ABF04777E  # 0ABF04|
        return (
            f"{self.dtm.isoformat(timespec='microseconds')} "
            f"{bytes(self).hex().upper()}  # {self._hdr}"
        )

    @property
    def dtm(self) -> dt:
        return self._dtm

    @staticmethod
    def _partition(pkt_line: str) -> tuple[str, str, str]:
        """Partition a packet line into its three parts.

        Format: frame_hex[ * err_msg][ # comment]
        """

        fragment, _, comment = pkt_line.partition("#")
        frame, _, err_msg = fragment.partition("*")
        return frame.strip(), err_msg.strip(), comment.strip()

    @classmethod
    def from_file(cls, dtm: str, pkt_line: str) -> Packet:
        """Create a packet from a log file line."""

        frame, err_msg, comment = cls._partition(pkt_line)
        if not frame:
            raise ValueError(f"null frame: >>>{pkt_line}<<<")
        try:
            raw = bytes.fromhex("".join(frame.split()))
        except ValueError as err:
            raise exc.PacketInvalid(f"Bad frame: not hex: >>>{frame}<<<") from err
        return cls(dt.fromisoformat(dtm), raw, err_msg=err_msg, comment=comment)

    @classmethod
    def from_port(cls, dtm: dt, frame: Frame | bytes) -> Packet:
        """Create a packet from a frame received via the socket."""
        return cls(dtm, bytes(frame))
