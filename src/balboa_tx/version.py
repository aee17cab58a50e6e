#!/usr/bin/env python3
"""Balboa TX - a Balboa spa protocol decoder & client."""

__version__ = "0.2.0"
VERSION = __version__
