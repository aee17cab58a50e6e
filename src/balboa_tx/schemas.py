#!/usr/bin/env python3
"""Balboa TX - a Balboa spa protocol decoder & client.

Schema processor for protocol (lower) layer.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Final, TypedDict

import voluptuous as vol

from .const import DEFAULT_CONNECT_TIMEOUT, DEFAULT_PORT, DEFAULT_RECONNECT_DELAY

_LOGGER = logging.getLogger(__name__)


#
# 1/3: Packet source configuration
SZ_CONNECT_TIMEOUT: Final = "connect_timeout"
SZ_HOST: Final = "host"
SZ_INPUT_FILE: Final = "input_file"
SZ_PORT: Final = "port"
SZ_RECONNECT_DELAY: Final = "reconnect_delay"

SCH_CONNECTION_DICT = {
    vol.Optional(SZ_PORT, default=DEFAULT_PORT): vol.All(
        int, vol.Range(min=1, max=65535)
    ),
    vol.Optional(SZ_CONNECT_TIMEOUT, default=DEFAULT_CONNECT_TIMEOUT): vol.All(
        vol.Coerce(float), vol.Range(min=0.1, max=120)
    ),
    vol.Optional(SZ_RECONNECT_DELAY, default=DEFAULT_RECONNECT_DELAY): vol.All(
        vol.Coerce(float), vol.Range(min=0, max=3600)
    ),
}


#
# 2/3: Packet log configuration
SZ_FILE_NAME: Final = "file_name"
SZ_PACKET_LOG: Final = "packet_log"
SZ_ROTATE_BACKUPS: Final = "rotate_backups"
SZ_ROTATE_BYTES: Final = "rotate_bytes"


class PktLogConfigT(TypedDict):
    file_name: str
    rotate_backups: int
    rotate_bytes: int | None


def sch_packet_log_dict_factory(
    default_backups: int = 0,
) -> dict[vol.Required, vol.Any]:
    """Return a packet log dict with a configurable default rotation policy.

    usage:

    SCH_PACKET_LOG_7 = vol.Schema(
        sch_packet_log_dict_factory(default_backups=7), extra=vol.PREVENT_EXTRA
    )
    """

    SCH_PACKET_LOG_CONFIG = vol.Schema(
        {
            vol.Optional(SZ_ROTATE_BACKUPS, default=default_backups): vol.Any(
                None, int
            ),
            vol.Optional(SZ_ROTATE_BYTES, default=None): vol.Any(None, int),
        },
        extra=vol.PREVENT_EXTRA,
    )

    SCH_PACKET_LOG_NAME = str

    def NormalisePacketLog(rotate_backups: int = 0) -> Callable[..., Any]:
        def normalise_packet_log(node_value: str | PktLogConfigT) -> PktLogConfigT:
            if isinstance(node_value, str):
                return {
                    SZ_FILE_NAME: node_value,
                    SZ_ROTATE_BACKUPS: rotate_backups,
                    SZ_ROTATE_BYTES: None,
                }
            return node_value

        return normalise_packet_log

    return {  # SCH_PACKET_LOG_DICT
        vol.Required(SZ_PACKET_LOG, default=None): vol.Any(
            None,
            vol.All(
                SCH_PACKET_LOG_NAME,
                NormalisePacketLog(rotate_backups=default_backups),
            ),
            SCH_PACKET_LOG_CONFIG.extend(
                {vol.Required(SZ_FILE_NAME): SCH_PACKET_LOG_NAME}
            ),
        )
    }


SCH_PACKET_LOG = vol.Schema(
    sch_packet_log_dict_factory(default_backups=0), extra=vol.PREVENT_EXTRA
)


#
# 3/3: Engine configuration
SZ_DISABLE_SENDING: Final = "disable_sending"

SCH_ENGINE_DICT = {
    vol.Optional(SZ_DISABLE_SENDING, default=False): bool,
    **SCH_CONNECTION_DICT,
}
SCH_ENGINE_CONFIG = vol.Schema(SCH_ENGINE_DICT, extra=vol.REMOVE_EXTRA)
