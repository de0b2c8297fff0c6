"""
Pytest configuration for the allocation core tests.

This file adds the parent directory to the Python path so that tests
can import from the domain, repositories and services modules, and
provides an engine wired over the in-memory store with a fixed clock.
"""

import sys
from pathlib import Path

import pytest

# Add the allocation-core directory to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from builders import FixedClock, build_memory_engine  # noqa: E402


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def engine(clock):
    return build_memory_engine(clock)


@pytest.fixture
def ledger(engine):
    return engine.ledger


@pytest.fixture
def catalog(engine):
    return engine.pools
