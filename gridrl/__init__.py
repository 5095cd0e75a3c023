"""
Grid-world tabular reinforcement learning.

A small training engine for Q-learning, SARSA, DQN-lite and SAC-lite on a
deterministic grid world, with Hydra-driven experiment scripts.
"""

from .envs.gridworld import GridWorldEnvironment, InvalidStateError, make_gridworld_env
from .utils.config_schema import (
    Algorithm,
    ConfigurationError,
    Hyperparameters,
    default_hyperparameters,
)
from .training.trainer import EpisodeSummary, StepResult, Trainer, TrainerState

__version__ = "1.0.0"
__author__ = "RL Course Project"

__all__ = [
    "Algorithm",
    "ConfigurationError",
    "EpisodeSummary",
    "GridWorldEnvironment",
    "Hyperparameters",
    "InvalidStateError",
    "StepResult",
    "Trainer",
    "TrainerState",
    "default_hyperparameters",
    "make_gridworld_env",
]
