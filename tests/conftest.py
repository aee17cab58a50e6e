#!/usr/bin/env python3
"""Fixtures for testing."""

import pytest


@pytest.fixture(autouse=True)
def patches_for_tests(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("balboa_spa.synthesis._DBG_LOG_TOGGLES", False)
