"""
Pytest configuration and fixtures for cfe_fdump tests.
"""
from __future__ import annotations

import pytest

from console_stubs import FakeCfeConsole


@pytest.fixture
def memory() -> bytes:
    return bytes((i * 7 + 3) & 0xFF for i in range(512))


@pytest.fixture
def console(memory: bytes) -> FakeCfeConsole:
    return FakeCfeConsole(memory)
