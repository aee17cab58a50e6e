#!/usr/bin/env python3
"""A CLI for the balboa_spa library."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any, Final

import click
import voluptuous as vol
from colorama import Fore, Style, init as colorama_init

from balboa_spa import Packet, SpaClient, exceptions as exc
from balboa_spa.const import Code
from balboa_spa.schemas import SCH_GLOBAL_CONFIG, SZ_CONFIG
from balboa_tx import Command
from balboa_tx.logger import CONSOLE_COLS, DEFAULT_DATEFMT, DEFAULT_FMT
from balboa_tx.schemas import SZ_HOST, SZ_INPUT_FILE, SZ_PACKET_LOG

# this is called after import colorlog to ensure its handlers wrap the correct streams
logging.basicConfig(level=logging.WARNING, format=DEFAULT_FMT, datefmt=DEFAULT_DATEFMT)


EXECUTE: Final = "execute"
MONITOR: Final = "monitor"
PARSE: Final = "parse"

SET_TEMP: Final = "set_temp"
SET_PUMP: Final = "pump"
SET_LIGHT: Final = "light"
SET_BLOWER: Final = "blower"
SET_HOLD: Final = "hold"

DEFAULT_CONFIG_TIMEOUT: Final[float] = 30.0  # secs, to wait for the capabilities


COLORS = {
    Code.STATUS: Fore.GREEN,
    Code.CAPABILITIES: Style.BRIGHT + Fore.MAGENTA,
    Code.FAULT_LOG: Style.BRIGHT + Fore.RED,
    Code.CONFIG: Fore.CYAN,
    Code.FILTER_CYCLES: Fore.CYAN,
    Code.SYSTEM_INFO: Fore.CYAN,
    Code.PREFERENCES: Fore.CYAN,
}

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])

LIB_KEYS = tuple(SCH_GLOBAL_CONFIG({}).keys()) + (SZ_HOST, SZ_INPUT_FILE)
LIB_CFG_KEYS = tuple(SCH_GLOBAL_CONFIG({})[SZ_CONFIG].keys())


def split_kwargs(obj: tuple[dict, dict], kwargs: dict) -> tuple[dict, dict]:
    """Split kwargs into cli/library kwargs (unspecified library options are skipped)."""
    cli_kwargs, lib_kwargs = obj

    cli_kwargs.update(
        {k: v for k, v in kwargs.items() if k not in LIB_KEYS + LIB_CFG_KEYS}
    )
    lib_kwargs.update(
        {k: v for k, v in kwargs.items() if k in LIB_KEYS and v is not None}
    )
    lib_kwargs[SZ_CONFIG].update(
        {k: v for k, v in kwargs.items() if k in LIB_CFG_KEYS and v is not None}
    )

    return cli_kwargs, lib_kwargs


def deep_merge(src: dict, dst: dict) -> dict:
    """Merge src into dst (a copy), with src taking precedence."""

    result = dict(dst)
    for key, value in src.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(value, result[key])
        else:
            result[key] = value
    return result


class OnOffParamType(click.ParamType):
    name = "on|off"

    def convert(self, value: Any, param, ctx):
        if isinstance(value, bool):
            return value
        if str(value).lower() in ("on", "true", "1"):
            return True
        if str(value).lower() in ("off", "false", "0"):
            return False
        self.fail(f"{value!r} is not one of: on, off", param, ctx)


ON_OFF = OnOffParamType()


# Args/Params for both TCP and file
@click.group(context_settings=CONTEXT_SETTINGS)
@click.option("-c", "--config-file", type=click.File("r"))
@click.option("-lf", "--long-format", is_flag=True, help="dont truncate STDOUT")
@click.option(
    "-i/-ni",
    "--ignore-capabilities/--no-ignore-capabilities",
    default=None,
    help="treat all components as present",
)
@click.pass_context
def cli(ctx, config_file=None, **kwargs: Any) -> None:
    """A CLI for the balboa_spa library."""

    kwargs, lib_kwargs = split_kwargs(({}, {SZ_CONFIG: {}}), kwargs)

    if config_file:  # CLI takes precedence
        lib_kwargs = deep_merge(lib_kwargs, json.load(config_file))

    ctx.obj = kwargs, lib_kwargs


# Args/Params for packet log only
class FileCommand(click.Command):  # client.py parse <file>
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.params.insert(  # input_file
            0, click.Argument(("input-file",), type=click.File("r"), default=sys.stdin)
        )


# Args/Params for TCP only
class HostCommand(click.Command):  # client.py <command> <host> --packet-log xxx
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.params.insert(0, click.Argument(("host",)))
        self.params.insert(  # --port
            1,
            click.Option(
                ("-p", "--port"),
                type=click.IntRange(1, 65535),
                help="The TCP port of the spa (default: 4257)",
            ),
        )
        self.params.insert(  # --packet-log
            2,
            click.Option(
                ("-o", "--packet-log"),
                type=click.Path(),
                help="Log all packets to this file",
            ),
        )


#
# 1/3: PARSE (a file)
@click.command(cls=FileCommand)  # parse a packet log, then stop
@click.pass_obj
def parse(obj, **kwargs: Any):
    """Parse a log file for packets, then print the state of the spa."""
    config, lib_config = split_kwargs(obj, kwargs)

    return PARSE, lib_config, config


#
# 2/3: MONITOR (listen to the spa, +/- execute a command)
@click.command(cls=HostCommand)  # (optionally) execute a command, then monitor
@click.option(  # --exec-cmd '0ABF22 000001'
    "-x", "--exec-cmd", type=click.STRING, help="e.g. '0ABF22 000001'"
)
@click.option("-s/-ns", "--show-state/--no-show-state", default=True)
@click.pass_obj
def monitor(obj, **kwargs: Any):
    """Monitor the spa for packets, and changes of state."""
    config, lib_config = split_kwargs(obj, kwargs)

    return MONITOR, lib_config, config


#
# 3/3: EXECUTE (change the state of the spa)
@click.command(cls=HostCommand)  # make the changes, then stop
@click.option("--set-temp", type=click.FLOAT, help="target temperature")
@click.option(  # --pump 1 2
    "--pump", type=(int, click.IntRange(0, 2)), multiple=True, help="pump, speed"
)
@click.option(  # --light 1 on
    "--light", type=(int, ON_OFF), multiple=True, help="light, on|off"
)
@click.option("--blower", type=click.IntRange(0, 3), help="blower speed")
@click.option("--hold", type=ON_OFF, help="on|off")
@click.option(
    "--timeout",
    type=click.FLOAT,
    default=DEFAULT_CONFIG_TIMEOUT,
    help="secs to wait for the configuration",
)
@click.pass_obj
def execute(obj, **kwargs: Any):
    """Connect, make the specified changes, print the state, then quit."""
    config, lib_config = split_kwargs(obj, kwargs)

    return EXECUTE, lib_config, config


async def execute_changes(client: SpaClient, **kwargs: Any) -> None:
    """Apply the changes specified on the command line (in a fixed order)."""

    if kwargs[SET_TEMP] is not None:
        await client.set_target_temp(kwargs[SET_TEMP])

    for pump, speed in kwargs[SET_PUMP]:
        await client.set_pump_speed(pump, speed)

    for light, on in kwargs[SET_LIGHT]:
        await client.set_light_state(light, on)

    if kwargs[SET_BLOWER] is not None:
        await client.set_blower_speed(kwargs[SET_BLOWER])

    if kwargs[SET_HOLD] is not None:
        await client.set_hold(kwargs[SET_HOLD])

    await asyncio.sleep(client.config.confirm_delay)  # for the next status


def print_summary(client: SpaClient, **kwargs: Any) -> None:
    print(f"\r\n{client.state_to_string()}\r\n")

    if client.fault:
        print(f"Fault log (most recent): {client.fault}\r\n")


async def async_main(command: str, lib_kwargs: dict, **kwargs: Any) -> None:
    """Do certain things."""

    def handle_pkt(pkt: Packet) -> None:
        """Process the packet as it arrives (a callback).

        In this case, the packet is merely printed.
        """

        if kwargs["long_format"]:
            print(f"{pkt!r}")
            return

        dtm = f"{pkt.dtm:%H:%M:%S.%f}"[:-3]
        print(f"{COLORS.get(pkt.code, Fore.WHITE)}{dtm} {pkt}"[:CONSOLE_COLS])

    def handle_state_changed() -> None:
        print(f"{Style.BRIGHT}{Fore.YELLOW}{client.state_to_string()}")

    host = lib_kwargs.pop(SZ_HOST, None)
    input_file = lib_kwargs.pop(SZ_INPUT_FILE, None)

    try:
        lib_kwargs = SCH_GLOBAL_CONFIG(lib_kwargs)
    except vol.Invalid as err:
        print(f"\r\nclient.py: Invalid configuration: {err}")
        return

    config_known = asyncio.Event()

    client = SpaClient(
        host,
        input_file=input_file,
        config=lib_kwargs[SZ_CONFIG],
        packet_log=lib_kwargs[SZ_PACKET_LOG],
        on_state_changed=handle_state_changed if kwargs.get("show_state") else None,
        on_config_known=config_known.set,
    )

    colorama_init(autoreset=True)
    client.add_pkt_handler(handle_pkt)

    print("\r\nclient.py: Starting client...")

    try:  # main code here
        await client.start()

        if command == EXECUTE:
            await asyncio.wait_for(config_known.wait(), timeout=kwargs["timeout"])
            await execute_changes(client, **kwargs)

        elif command == MONITOR:
            if kwargs["exec_cmd"]:
                await client.wait_for_connection_made(timeout=DEFAULT_CONFIG_TIMEOUT)
                await client.async_send_cmd(Command.from_cli(kwargs["exec_cmd"]))
            await asyncio.Event().wait()  # until SIGINT

    except asyncio.CancelledError:
        msg = "ended via: CancelledError (e.g. SIGINT)"
    except KeyboardInterrupt:
        msg = "ended via: KeyboardInterrupt"
    except TimeoutError:
        msg = "ended via: TimeoutError (is the spa reachable?)"
    except exc.SpaException as err:
        msg = f"ended via: SpaException: {err}"
    else:  # if no Exceptions raised, e.g. EOF when parsing
        msg = "ended without error (e.g. EOF)"
    finally:
        await client.stop()

    print(f"\r\nclient.py: Client stopped: {msg}")

    print_summary(client, **kwargs)


cli.add_command(parse)
cli.add_command(monitor)
cli.add_command(execute)


def main() -> None:
    print("\r\nclient.py: Starting balboa_spa...")

    try:
        result = cli(standalone_mode=False)
    except click.ClickException as err:
        print(f"Error: {err}")
        sys.exit(-1)

    if isinstance(result, int):
        sys.exit(result)

    (command, lib_kwargs, kwargs) = result

    try:
        asyncio.run(async_main(command, lib_kwargs, **kwargs))
    except KeyboardInterrupt:
        print("\r\nclient.py: Client stopped: ended via: KeyboardInterrupt")

    print(" - finished balboa_spa.\r\n")


if __name__ == "__main__":
    main()
