"""Shared fixtures for the session core tests."""

import random

import pytest
from argon2 import PasswordHasher


@pytest.fixture
def fast_hasher() -> PasswordHasher:
    """Argon2 with the cheapest parameters so lobby tests stay fast."""
    return PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)
