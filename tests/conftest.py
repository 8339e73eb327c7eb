"""
Pytest Configuration and Shared Fixtures
========================================

Synthetic response matrices with known structure.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture
def rng():
    """Seeded generator for reproducible draws."""
    return np.random.default_rng(42)


@pytest.fixture
def identical_items():
    """10 subjects x 4 items, every item the same column."""
    column = [1, 2, 3, 4, 5, 4, 3, 2, 1, 5]
    return [[value] * 4 for value in column]


@pytest.fixture
def single_factor_data():
    """200 subjects x 6 items generated as factor score + small noise."""
    gen = np.random.default_rng(7)
    factor = gen.standard_normal(200)
    noise = gen.standard_normal((200, 6))
    return factor[:, None] + 0.3 * noise


@pytest.fixture
def two_factor_data():
    """300 subjects; items 1-3 measure one factor, items 4-6 another."""
    gen = np.random.default_rng(11)
    f1 = gen.standard_normal(300)
    f2 = gen.standard_normal(300)
    noise = gen.standard_normal((300, 6))
    block1 = f1[:, None] + 0.5 * noise[:, :3]
    block2 = f2[:, None] + 0.5 * noise[:, 3:]
    return np.hstack([block1, block2])


@pytest.fixture
def random_normal_data():
    """200 subjects x 5 independent standard-normal items."""
    return np.random.default_rng(3).standard_normal((200, 5))


@pytest.fixture
def random_likert_data():
    """200 subjects x 5 independent uniform 1-5 responses."""
    return np.random.default_rng(5).integers(1, 6, size=(200, 5))


@pytest.fixture
def random_orthogonal():
    """Factory for random orthogonal matrices."""
    def make(n, seed):
        gen = np.random.default_rng(seed)
        q, _ = np.linalg.qr(gen.standard_normal((n, n)))
        return q
    return make
