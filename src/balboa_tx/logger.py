#!/usr/bin/env python3
"""Balboa TX - the packet log.

Every packet is logged as a single line, timestamped by when its frame was received,
in the same format that is replayed by the FileTransport:

  2024-03-31T12:00:00.123456 7E050ABF04777E[ * error_text][ # comment]
"""

from __future__ import annotations

import logging
import shutil
import sys
from datetime import datetime as dt
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from typing import Final

import colorlog

from .version import VERSION

DEFAULT_FMT = "%(asctime)s.%(msecs)03d %(message)s"
DEFAULT_DATEFMT = "%H:%M:%S"

CONSOLE_COLS = int(shutil.get_terminal_size(fallback=(int(2e3), 24)).columns - 1)

PKT_LOG_FMT: Final = "%(asctime)s%(pkt_frame)s%(pkt_error)s%(pkt_comment)s"
CONSOLE_FMT: Final = (
    "%(log_color)s%(asctime)s%(pkt_frame)s%(red)s%(pkt_error)s%(cyan)s%(pkt_comment)s"
)

LOG_COLOURS: Final = {"INFO": "green", "WARNING": "yellow"}

DEFAULT_ROTATE_BACKUPS: Final = 2  # if rotating by size, but no count was given


class PktLogFilter(logging.Filter):
    """Pass only packet records, and prepare them for formatting.

    Packets are logged at INFO, or WARNING if they are flawed. Their records carry the
    extras: _frame (as hex), _dtm (when received), and optionally error_text & comment.
    Any message is treated as (more) error text.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno not in (logging.INFO, logging.WARNING):
            return False

        if isinstance(dtm := getattr(record, "_dtm", None), dt):
            record.created = dtm.timestamp()

        frame = getattr(record, "_frame", "")
        record.pkt_frame = f" {frame}" if frame else ""

        errors = [getattr(record, "error_text", ""), record.getMessage()]
        errors = [e for e in errors if e]
        record.pkt_error = f" * {'; '.join(errors)}" if errors else ""

        comment = getattr(record, "comment", "")
        record.pkt_comment = f" # {comment}" if comment else ""

        return True


class _PktTimeMixin:
    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        """Return the record's timestamp (the packet's dtm) with microseconds."""
        return dt.fromtimestamp(record.created).isoformat(timespec="microseconds")


class PktFormatter(_PktTimeMixin, logging.Formatter):
    pass


class PktColoredFormatter(_PktTimeMixin, colorlog.ColoredFormatter):  # type: ignore[misc]
    pass


def _file_handler(
    file_name: str, rotate_backups: int, rotate_bytes: int | None
) -> logging.FileHandler:
    if rotate_bytes:
        return RotatingFileHandler(
            file_name,
            maxBytes=rotate_bytes,
            backupCount=rotate_backups or DEFAULT_ROTATE_BACKUPS,
        )
    if rotate_backups:
        return TimedRotatingFileHandler(
            file_name, when="midnight", backupCount=rotate_backups
        )
    return logging.FileHandler(file_name)


def set_pkt_logging(
    logger: logging.Logger,
    cc_console: bool = False,
    file_name: str | None = None,
    rotate_backups: int = 0,
    rotate_bytes: int | None = None,
) -> None:
    """Configure the packet log, replacing any previous configuration.

    Parameters:
    - rotate_backups: keep this many copies, and rotate at midnight unless:
    - rotate_bytes:   rotate log files when log > rotate_bytes
    - cc_console:     also log packets to stderr (in colour)

    With neither a file_name nor cc_console, packet logging is disabled.
    """

    logger.propagate = False  # log file is distinct from any app/debug logging

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for fltr in list(logger.filters):
        logger.removeFilter(fltr)

    if not file_name and not cc_console:
        logger.setLevel(logging.CRITICAL)
        logger.addHandler(logging.NullHandler())
        return

    logger.setLevel(logging.INFO)
    logger.addFilter(PktLogFilter())  # once per record, before any handler

    if file_name:
        handler = _file_handler(file_name, rotate_backups, rotate_bytes)
        handler.setFormatter(PktFormatter(fmt=PKT_LOG_FMT))
        logger.addHandler(handler)

    if cc_console:
        console = logging.StreamHandler(stream=sys.stderr)
        console.setFormatter(
            PktColoredFormatter(fmt=CONSOLE_FMT, reset=True, log_colors=LOG_COLOURS)
        )
        logger.addHandler(console)

    logger.warning("", extra={"comment": f"balboa_tx {VERSION}"})  # initial log line
