#!/usr/bin/env python3
"""Fixtures for testing (no spa is required)."""

import pytest

from .helpers import CommandRecorder


@pytest.fixture
def recorder() -> CommandRecorder:
    return CommandRecorder()
