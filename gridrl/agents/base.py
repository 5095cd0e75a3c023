"""
Base class for tabular grid-world agents.

This module provides:
- BaseAgent: Abstract base class defining the agent interface

An agent owns its value store (and policy store, if any) and applies one
algorithm's update rule to transitions handed to it by the trainer.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import numpy as np

from ..envs.gridworld import GridWorldEnvironment, State
from ..utils.config_schema import Algorithm, Hyperparameters
from ..utils.replay_buffer import Experience
from .value_store import StoreMode, ValueStore


class BaseAgent(ABC):
    """
    Abstract base class for tabular RL agents.

    Defines the interface that all agents must implement:
    - select_action: Choose action given state
    - update: Apply the algorithm's TD rule to one transition
    - end_episode: Decay exploration or tune temperature

    Also provides common functionality:
    - Value store construction for the subclass's table arrangement
    - Configuration and snapshot export

    Args:
        env: Grid world the agent acts in
        hyperparameters: Validated hyperparameter set
        rng: Random generator for initialisation and action selection
    """

    algorithm: Algorithm
    store_mode: StoreMode = StoreMode.SINGLE
    # Width of the uniform random value initialisation (0 = zeros)
    init_scale: float = 0.0
    # On-policy agents need the next action before they can update
    is_on_policy: bool = False
    # Replay-based agents receive sampled batches from the trainer
    uses_replay: bool = False

    def __init__(
        self,
        env: GridWorldEnvironment,
        hyperparameters: Hyperparameters,
        rng: Optional[np.random.Generator] = None
    ) -> None:
        self.env = env
        self.hyperparameters = hyperparameters
        self.learning_rate = hyperparameters.alpha
        self.gamma = hyperparameters.gamma
        self.rng = rng if rng is not None else np.random.default_rng()

        self.values = ValueStore(
            env.width,
            env.height,
            mode=self.store_mode,
            init_scale=self.init_scale,
            rng=self.rng,
        )

        # Training statistics
        self.update_count = 0
        self.episode_count = 0

    @abstractmethod
    def select_action(self, state: State, training: bool = True) -> int:
        """
        Select an action at state.

        Args:
            state: Current (x, y)
            training: If True, explore; if False, act greedily

        Returns:
            Selected action index
        """
        pass

    @abstractmethod
    def update(
        self,
        experience: Experience,
        next_action: Optional[int] = None,
        batch: Optional[List[Experience]] = None
    ) -> Dict[str, Any]:
        """
        Apply the update rule to one real transition.

        Args:
            experience: The transition just taken
            next_action: Action chosen at next_state (on-policy agents)
            batch: Replayed transitions (replay-based agents)

        Returns:
            Dictionary of step diagnostics; always includes 'td_error' and
            'value_delta' (largest absolute table change in this step)
        """
        pass

    @abstractmethod
    def end_episode(self) -> Dict[str, float]:
        """Per-episode schedule step; returns the new exploration state."""
        pass

    @property
    @abstractmethod
    def exploration_name(self) -> str:
        """'epsilon' or 'temperature'."""
        pass

    @property
    @abstractmethod
    def exploration_rate(self) -> float:
        pass

    def greedy_action(self, state: State) -> int:
        """Action the agent takes when not exploring."""
        return self.select_action(state, training=False)

    def policy_snapshot(self) -> Optional[Dict[str, Any]]:
        """Serialisable policy tables; None for value-based agents."""
        return None

    def snapshot(self) -> Dict[str, Any]:
        """Serialisable view of tables and exploration state."""
        return {
            "value_tables": self.values.to_dict(),
            "policy_tables": self.policy_snapshot(),
            "exploration": {
                "name": self.exploration_name,
                "value": float(self.exploration_rate),
            },
            "update_count": self.update_count,
            "episode_count": self.episode_count,
        }

    def get_config(self) -> Dict[str, Any]:
        """Return agent configuration as dictionary."""
        config = self.hyperparameters.to_dict()
        config.update({
            "agent_type": self.algorithm.value,
            "store_mode": self.store_mode.value,
            "is_on_policy": self.is_on_policy,
        })
        return config

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"lr={self.learning_rate}, "
            f"gamma={self.gamma}, "
            f"{self.exploration_name}={self.exploration_rate:.3f})"
        )
