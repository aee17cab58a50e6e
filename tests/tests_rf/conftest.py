#!/usr/bin/env python3
"""Fixtures for testing via a fake spa."""

from collections.abc import AsyncGenerator

import pytest

from .fake_spa import FakeSpa


@pytest.fixture
async def fake_spa() -> AsyncGenerator[FakeSpa, None]:  # NOTE: async to get running loop
    spa = FakeSpa()
    await spa.start()
    try:
        yield spa
    finally:
        await spa.stop()
