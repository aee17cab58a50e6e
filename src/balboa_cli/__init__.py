#!/usr/bin/env python3
"""A CLI for the balboa_spa library."""

from __future__ import annotations

from typing import Final

#
# NOTE: All debug flags should be False for deployment to end-users
_DBG_FORCE_CLI_LOGGING: Final[bool] = False  # for debugging of CLI (usu. of click)


if _DBG_FORCE_CLI_LOGGING:
    import logging

    logging.getLogger("balboa_cli").setLevel(logging.DEBUG)
