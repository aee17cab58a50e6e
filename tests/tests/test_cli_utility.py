#!/usr/bin/env python3
"""Balboa spa - Test the CLI utility."""

import io
import json
from pathlib import Path
from types import SimpleNamespace

import click
import pytest

from balboa_cli import _DBG_FORCE_CLI_LOGGING
from balboa_cli.client import EXECUTE, PARSE, cli, deep_merge, execute_changes

if _DBG_FORCE_CLI_LOGGING:
    pytest.skip(
        f"_DBG_FORCE_CLI_LOGGING = {_DBG_FORCE_CLI_LOGGING}",
        allow_module_level=True,
    )


STDIN = io.StringIO("2024-03-31T12:00:00.000000 7E050ABF04777E\r\n")

CLI_CONFIG_BASE = {"long_format": False}

CLI_CONFIG_EXECUTE = CLI_CONFIG_BASE | {
    "set_temp": None,
    "pump": (),
    "light": (),
    "blower": None,
    "hold": None,
    "timeout": 30.0,
}
CLI_CONFIG_MONITOR = CLI_CONFIG_BASE | {"exec_cmd": None, "show_state": True}
CLI_CONFIG_PARSE__ = CLI_CONFIG_BASE

LIB_CONFIG_EXECUTE = {"config": {}, "host": "192.168.1.50"}
LIB_CONFIG_MONITOR = {"config": {}, "host": "192.168.1.50"}
LIB_CONFIG_PARSE__ = {"config": {}, "input_file": "<stdin>"}

BASIC_TESTS = (
    (["client.py", "execute", "192.168.1.50"], CLI_CONFIG_EXECUTE, LIB_CONFIG_EXECUTE),
    (["client.py", "monitor", "192.168.1.50"], CLI_CONFIG_MONITOR, LIB_CONFIG_MONITOR),
    (["client.py", "parse"], CLI_CONFIG_PARSE__, LIB_CONFIG_PARSE__),
)


def id_fnc(param: int) -> str:
    return f"{BASIC_TESTS[param][0][1]:7}"


@pytest.mark.parametrize("index", range(len(BASIC_TESTS)), ids=id_fnc)
def test_client_basic(
    monkeypatch: pytest.MonkeyPatch, index: int, tests: tuple = BASIC_TESTS
) -> None:
    monkeypatch.setattr("sys.argv", tests[index][0])
    if tests[index][0][1] == PARSE:
        monkeypatch.setattr("sys.stdin", STDIN)

    cmd_string, lib_config, cli_config = cli(standalone_mode=False)

    if lib_config.get("input_file"):
        lib_config["input_file"] = LIB_CONFIG_PARSE__["input_file"]

    assert cmd_string == tests[index][0][1]
    assert cli_config == tests[index][1]
    assert lib_config == tests[index][2]


def test_client_execute(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "sys.argv",
        [
            "client.py",
            "-i",
            "execute",
            "spa.local",
            "-p",
            "4257",
            "-o",
            "packet.log",
            "--set-temp",
            "101.5",
            "--pump",
            "1",
            "2",
            "--light",
            "1",
            "on",
            "--blower",
            "3",
            "--hold",
            "off",
        ],
    )

    cmd_string, lib_config, cli_config = cli(standalone_mode=False)

    assert cmd_string == EXECUTE
    assert lib_config == {
        "config": {"ignore_capabilities": True, "port": 4257},
        "host": "spa.local",
        "packet_log": "packet.log",
    }
    assert cli_config == CLI_CONFIG_EXECUTE | {
        "set_temp": 101.5,
        "pump": ((1, 2),),
        "light": ((1, True),),
        "blower": 3,
        "hold": False,
    }


@pytest.mark.parametrize(
    "args",
    (
        ["--pump", "1", "3"],  # speed out of range
        ["--light", "1", "dim"],  # not on/off
        ["--blower", "4"],
        ["-p", "0"],
    ),
)
def test_client_execute_invalid(monkeypatch: pytest.MonkeyPatch, args: list) -> None:
    monkeypatch.setattr("sys.argv", ["client.py", "execute", "spa.local", *args])

    with pytest.raises(click.ClickException):
        cli(standalone_mode=False)


def test_client_config_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    config_file = tmp_path / "config.json"
    config_file.write_text(
        json.dumps(
            {
                "config": {"reconnect_delay": 5, "ignore_capabilities": False},
                "packet_log": "packet.log",
            }
        )
    )

    monkeypatch.setattr(
        "sys.argv",
        ["client.py", "-c", str(config_file), "-i", "monitor", "spa.local"],
    )

    _, lib_config, _ = cli(standalone_mode=False)

    assert lib_config == {  # the CLI takes precedence
        "config": {"reconnect_delay": 5, "ignore_capabilities": True},
        "packet_log": "packet.log",
        "host": "spa.local",
    }


def test_deep_merge() -> None:
    src = {"config": {"port": 4257}, "packet_log": None}
    dst = {"config": {"port": 80, "reconnect_delay": 5}, "host": "spa.local"}

    assert deep_merge(src, dst) == {
        "config": {"port": 4257, "reconnect_delay": 5},
        "packet_log": None,
        "host": "spa.local",
    }
    assert dst["config"]["port"] == 80  # is unchanged


class _FakeClient:
    def __init__(self) -> None:
        self.config = SimpleNamespace(confirm_delay=0)
        self.calls: list[tuple] = []

    def __getattr__(self, name: str):
        async def mutator(*args) -> None:
            self.calls.append((name, *args))

        return mutator


async def test_execute_changes() -> None:
    client = _FakeClient()

    await execute_changes(
        client,  # type: ignore[arg-type]
        **CLI_CONFIG_EXECUTE
        | {
            "set_temp": 100.0,
            "pump": ((1, 2), (2, 0)),
            "light": ((1, True),),
            "hold": True,
        },
    )

    assert client.calls == [
        ("set_target_temp", 100.0),
        ("set_pump_speed", 1, 2),
        ("set_pump_speed", 2, 0),
        ("set_light_state", 1, True),
        ("set_hold", True),
    ]
