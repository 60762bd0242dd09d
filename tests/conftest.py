"""Pytest configuration for path tracer tests.

Provides a seeded generator so sampling tests are repeatable.
"""

import numpy as np
import pytest


@pytest.fixture
def rng():
    """A fresh, fixed-seed generator for each test."""
    return np.random.default_rng(1234)
