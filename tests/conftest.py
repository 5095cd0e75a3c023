"""Pytest configuration and shared fixtures for gridrl tests.

This module provides:
- A deterministic numpy RNG fixture
- The canonical 5x5 environment
- A factory for configured trainers
"""

import os

import numpy as np
import pytest

from gridrl.envs.gridworld import DEFAULT_GOAL, DEFAULT_OBSTACLES, make_gridworld_env
from gridrl.training.trainer import Trainer


@pytest.fixture(scope="function")
def rng() -> np.random.Generator:
    """Provide a deterministic numpy RNG for tests.

    Uses seed from TEST_RNG_SEED environment variable (default: 0).
    """
    seed = int(os.environ.get("TEST_RNG_SEED", "0"))
    return np.random.default_rng(seed)


@pytest.fixture(scope="function")
def env():
    """The canonical 5x5 grid with five obstacles and the goal at (4, 4)."""
    return make_gridworld_env()


@pytest.fixture(scope="function")
def make_trainer():
    """Build a trainer on the canonical grid.

    Usage:
        trainer = make_trainer("sarsa", seed=3, alpha=0.5)
    """
    def _make(algorithm: str = "q_learning", seed: int = 0, **overrides) -> Trainer:
        return Trainer().configure(
            5,
            5,
            DEFAULT_OBSTACLES,
            DEFAULT_GOAL,
            algorithm=algorithm,
            hyperparameters=overrides or None,
            seed=seed,
        )

    return _make
