"""
Shared fixtures for chronokv tests.

FakeClock stands in for the wall clock so write timestamps are
deterministic: tests advance it explicitly between writes.
"""

import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))


# Some fixed second in late 2023, well inside the query bound
BASE_TIME = 1_700_000_000


class FakeClock:
    """Callable clock returning integer Unix seconds"""

    def __init__(self, start: int = BASE_TIME):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int = 1) -> int:
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return FakeClock()
