#!/usr/bin/env python3
"""Balboa spa - a Balboa spa protocol decoder & client.

Schema processor for upper layer.
"""

from __future__ import annotations

import logging
from typing import Final

import voluptuous as vol

from balboa_tx.schemas import (  # noqa: F401
    SCH_ENGINE_DICT,
    SZ_DISABLE_SENDING,
    SZ_PACKET_LOG,
    sch_packet_log_dict_factory,
)

from .const import (
    DEFAULT_CONFIRM_DELAY,
    DEFAULT_FAULT_INITIAL_DELAY,
    DEFAULT_FAULT_POLL_INTERVAL,
    DEFAULT_NOTIFY_DELAY,
)
from .interpreter import STATUS_MIN_LENGTH, StatusBitMap

_LOGGER = logging.getLogger(__name__)


#
# 1/2: Client configuration
SZ_CONFIG: Final = "config"
SZ_CONFIRM_DELAY: Final = "confirm_delay"
SZ_FAULT_INITIAL_DELAY: Final = "fault_initial_delay"
SZ_FAULT_POLL_INTERVAL: Final = "fault_poll_interval"
SZ_IGNORE_CAPABILITIES: Final = "ignore_capabilities"
SZ_NOTIFY_DELAY: Final = "notify_delay"
SZ_STATUS_BITS: Final = "status_bits"

SCH_OFFSET = vol.All(int, vol.Range(min=0, max=STATUS_MIN_LENGTH - 1))
SCH_MASK = vol.All(int, vol.Range(min=1, max=0xFF))
SCH_BIT_FIELD = vol.All(vol.ExactSequence([SCH_OFFSET, SCH_MASK]), tuple)

SCH_STATUS_BITS = vol.Schema(
    {vol.Optional(k): SCH_BIT_FIELD for k in StatusBitMap.__dataclass_fields__},
    extra=vol.PREVENT_EXTRA,
)

SCH_CLIENT_DICT = {
    vol.Optional(SZ_IGNORE_CAPABILITIES, default=False): bool,
    vol.Optional(SZ_CONFIRM_DELAY, default=DEFAULT_CONFIRM_DELAY): vol.All(
        vol.Coerce(float), vol.Range(min=0, max=10)
    ),
    vol.Optional(SZ_NOTIFY_DELAY, default=DEFAULT_NOTIFY_DELAY): vol.All(
        vol.Coerce(float), vol.Range(min=0, max=10)
    ),
    vol.Optional(SZ_FAULT_INITIAL_DELAY, default=DEFAULT_FAULT_INITIAL_DELAY): vol.All(
        vol.Coerce(float), vol.Range(min=0, max=3600)
    ),
    vol.Optional(SZ_FAULT_POLL_INTERVAL, default=DEFAULT_FAULT_POLL_INTERVAL): vol.All(
        vol.Coerce(float), vol.Range(min=1, max=86400)
    ),
    vol.Optional(SZ_STATUS_BITS, default={}): SCH_STATUS_BITS,
}
SCH_CLIENT_CONFIG = vol.Schema(SCH_CLIENT_DICT, extra=vol.REMOVE_EXTRA)


#
# 2/2: the Global (client) Schema, e.g. as loaded from a config file
SCH_GLOBAL_CONFIG = vol.Schema(
    {
        vol.Optional(SZ_CONFIG, default={}): vol.Schema(
            SCH_CLIENT_DICT | SCH_ENGINE_DICT, extra=vol.PREVENT_EXTRA
        ),
    },
    extra=vol.PREVENT_EXTRA,
).extend(sch_packet_log_dict_factory(default_backups=0))
