"""
DQN-lite agent: Q-learning with experience replay and a target table.

Implements the two stabilisers of DQN (Mnih et al., 2015) on a lookup table
instead of a network:
- Experience replay: each step also learns from a batch sampled from the
  replay buffer (the buffer itself is owned by the trainer)
- Target table: bootstrap targets come from a frozen copy of the live
  table, hard-synchronised every target_sync_interval steps

Target:
    y = r + gamma * max_a Q_target(s', a)
"""

import logging
from typing import Any, Dict, List, Optional

import numpy as np

from ..envs.gridworld import GridWorldEnvironment
from ..utils.config_schema import Algorithm, Hyperparameters
from ..utils.replay_buffer import Experience
from .q_learning import QLearningAgent
from .value_store import StoreMode


logger = logging.getLogger("gridrl.agents.dqn")


class DQNLiteAgent(QLearningAgent):
    """
    Tabular DQN agent.

    The live table starts uniformly random in [-5, 5]; the target table
    starts as a copy of it. Every real transition gets one TD update, then
    every replayed transition in the batch gets one more, all bootstrapping
    off the target table. After the updates the step counter advances and
    the target table is re-synced every target_sync_interval steps.

    Args:
        env: Grid world
        hyperparameters: Uses alpha, gamma, epsilon schedule and
            target_sync_interval
        rng: Random generator
    """

    algorithm = Algorithm.DQN_LITE
    store_mode = StoreMode.TARGET
    init_scale = 10.0
    uses_replay = True

    def __init__(
        self,
        env: GridWorldEnvironment,
        hyperparameters: Hyperparameters,
        rng: Optional[np.random.Generator] = None
    ) -> None:
        super().__init__(env, hyperparameters, rng)
        self.target_update_freq = hyperparameters.target_sync_interval

        # Real transitions seen; drives target synchronisation
        self.total_steps = 0

    def sync_target_network(self) -> None:
        """Hard update: copy the live table into the target table."""
        self.values.sync_target()
        logger.debug(f"Target table synced at step {self.total_steps}")

    def update(
        self,
        experience: Experience,
        next_action: Optional[int] = None,
        batch: Optional[List[Experience]] = None
    ) -> Dict[str, Any]:
        """
        Direct update, replay updates, then periodic target sync.

        Returns:
            Dictionary with metrics:
                - 'td_error', 'loss': for the real transition
                - 'replay_loss': mean squared TD error over the batch
                - 'batch_size': number of replayed transitions
                - 'value_delta': largest absolute table change this step
                - 'target_synced': whether the target table was refreshed
                - 'epsilon': current exploration rate
        """
        td_error = self._apply(experience)
        max_delta = abs(self.learning_rate * td_error)

        replay_errors = []
        for replayed in batch or []:
            error = self._apply(replayed)
            replay_errors.append(error)
            max_delta = max(max_delta, abs(self.learning_rate * error))

        self.total_steps += 1
        synced = self.total_steps % self.target_update_freq == 0
        if synced:
            self.sync_target_network()

        return {
            'td_error': td_error,
            'loss': td_error ** 2,
            'replay_loss': float(np.mean(np.square(replay_errors))) if replay_errors else 0.0,
            'batch_size': len(replay_errors),
            'value_delta': max_delta,
            'target_synced': synced,
            'epsilon': self.policy.epsilon,
        }

    def get_config(self) -> Dict[str, Any]:
        """Return agent configuration."""
        config = super().get_config()
        config.update({
            'target_update_freq': self.target_update_freq,
            'init_scale': self.init_scale,
        })
        return config
