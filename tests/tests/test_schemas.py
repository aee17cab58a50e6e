#!/usr/bin/env python3
"""Balboa spa - Test the configuration schemas."""

import pytest
import voluptuous as vol

from balboa_spa.schemas import SCH_CLIENT_CONFIG, SCH_GLOBAL_CONFIG
from balboa_tx.schemas import SCH_ENGINE_CONFIG, SCH_PACKET_LOG


def test_client_defaults() -> None:
    assert SCH_CLIENT_CONFIG({}) == {
        "ignore_capabilities": False,
        "confirm_delay": 0.5,
        "notify_delay": 0.25,
        "fault_initial_delay": 5.0,
        "fault_poll_interval": 600.0,
        "status_bits": {},
    }

    assert SCH_ENGINE_CONFIG({}) == {
        "disable_sending": False,
        "port": 4257,
        "connect_timeout": 10.0,
        "reconnect_delay": 20.0,
    }


def test_client_config_split() -> None:
    config = {"port": 4258, "notify_delay": "1", "ignore_capabilities": True}

    assert SCH_CLIENT_CONFIG(config)["notify_delay"] == 1.0
    assert "port" not in SCH_CLIENT_CONFIG(config)
    assert SCH_ENGINE_CONFIG(config)["port"] == 4258
    assert "ignore_capabilities" not in SCH_ENGINE_CONFIG(config)


def test_status_bits() -> None:
    config = SCH_CLIENT_CONFIG({"status_bits": {"blower": [16, 0x30]}})
    assert config["status_bits"] == {"blower": (16, 0x30)}

    with pytest.raises(vol.Invalid):
        SCH_CLIENT_CONFIG({"status_bits": {"blower": [99, 0x30]}})  # offset
    with pytest.raises(vol.Invalid):
        SCH_CLIENT_CONFIG({"status_bits": {"blower": [16, 0]}})  # mask
    with pytest.raises(vol.Invalid):
        SCH_CLIENT_CONFIG({"status_bits": {"jets": [16, 0x30]}})  # unknown field


@pytest.mark.parametrize(
    "config",
    (
        {"config": {"port": 0}},
        {"config": {"reconnect_delay": -1}},
        {"config": {"unknown_option": True}},
        {"unknown_key": None},
    ),
)
def test_global_config_invalid(config: dict) -> None:
    with pytest.raises(vol.Invalid):
        SCH_GLOBAL_CONFIG(config)


def test_global_config() -> None:
    assert SCH_GLOBAL_CONFIG({})["packet_log"] is None

    config = SCH_GLOBAL_CONFIG({"packet_log": "packet.log"})

    assert config["packet_log"] == {
        "file_name": "packet.log",
        "rotate_backups": 0,
        "rotate_bytes": None,
    }
    assert config["config"]["port"] == 4257

    config = SCH_PACKET_LOG(
        {"packet_log": {"file_name": "packet.log", "rotate_backups": 7}}
    )

    assert config["packet_log"] == {
        "file_name": "packet.log",
        "rotate_backups": 7,
        "rotate_bytes": None,
    }
