#!/usr/bin/env python3
"""Balboa TX - Test the packet log."""

import logging
from collections.abc import Generator
from datetime import datetime as dt
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path

import pytest

from balboa_tx import VERSION, Code, Packet
from balboa_tx.logger import set_pkt_logging
from balboa_tx.packet import PKT_LOGGER

from .helpers import make_frame, status_payload

DTM = dt(2024, 3, 31, 12, 0, 0, 123456)


@pytest.fixture
def pkt_logger() -> Generator[logging.Logger, None, None]:
    yield PKT_LOGGER
    set_pkt_logging(PKT_LOGGER)  # closes any file handlers


def test_packet_log_file(pkt_logger: logging.Logger, tmp_path: Path) -> None:
    path = tmp_path / "packet.log"
    set_pkt_logging(pkt_logger, file_name=str(path))

    frame = bytes(make_frame(Code.STATUS, status_payload()))
    Packet(DTM, frame, comment="a comment")

    flawed = frame[:-2] + bytes([frame[-2] ^ 0xFF]) + frame[-1:]  # bad checksum
    Packet(DTM, flawed)

    set_pkt_logging(pkt_logger)
    lines = path.read_text().splitlines()

    assert len(lines) == 3
    assert lines[0].endswith(f" # balboa_tx {VERSION}")
    assert lines[1] == f"2024-03-31T12:00:00.123456 {frame.hex().upper()} # a comment"
    assert lines[2].startswith(f"2024-03-31T12:00:00.123456 {flawed.hex().upper()} * ")


def test_packet_log_console(
    capsys: pytest.CaptureFixture[str], pkt_logger: logging.Logger
) -> None:
    set_pkt_logging(pkt_logger, cc_console=True)

    frame = bytes(make_frame(Code.STATUS, status_payload()))
    Packet(DTM, frame, comment="a comment")

    pkt_logger.error("not a packet")  # only INFO/WARNING records are packets
    pkt_logger.debug("not a packet")

    err = capsys.readouterr().err

    assert f"balboa_tx {VERSION}" in err
    assert f"2024-03-31T12:00:00.123456 {frame.hex().upper()}" in err
    assert " # a comment" in err
    assert "not a packet" not in err


@pytest.mark.parametrize(
    "rotate_backups, rotate_bytes, klass, backup_count",
    (
        (0, None, logging.FileHandler, None),
        (0, 10_000, RotatingFileHandler, 2),
        (3, 10_000, RotatingFileHandler, 3),
        (7, None, TimedRotatingFileHandler, 7),
    ),
)
def test_packet_log_rotation(
    pkt_logger: logging.Logger,
    tmp_path: Path,
    rotate_backups: int,
    rotate_bytes: int | None,
    klass: type,
    backup_count: int | None,
) -> None:
    set_pkt_logging(
        pkt_logger,
        file_name=str(tmp_path / "packet.log"),
        rotate_backups=rotate_backups,
        rotate_bytes=rotate_bytes,
    )

    (handler,) = pkt_logger.handlers

    assert type(handler) is klass
    assert getattr(handler, "backupCount", None) == backup_count
    if klass is TimedRotatingFileHandler:
        assert handler.when == "MIDNIGHT"


def test_packet_log_disabled(pkt_logger: logging.Logger, tmp_path: Path) -> None:
    set_pkt_logging(pkt_logger, file_name=str(tmp_path / "packet.log"))
    set_pkt_logging(pkt_logger)  # as called more than once, e.g. on restart

    assert not pkt_logger.isEnabledFor(logging.WARNING)
    assert pkt_logger.filters == []
    assert [type(h) for h in pkt_logger.handlers] == [logging.NullHandler]
