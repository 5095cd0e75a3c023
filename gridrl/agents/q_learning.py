"""
Tabular Q-learning agent.

Off-policy TD control:
    Q(s,a) <- Q(s,a) + alpha * (r + gamma * max_a' Q(s',a') - Q(s,a))

Terminal transitions use the bare reward as target. Actions are chosen
epsilon-greedily; epsilon decays once per episode.
"""

from typing import Any, Dict, List, Optional

import numpy as np

from ..envs.gridworld import GridWorldEnvironment, State
from ..utils.config_schema import Algorithm, Hyperparameters
from ..utils.replay_buffer import Experience
from .base import BaseAgent
from .policies import EpsilonGreedyPolicy


class QLearningAgent(BaseAgent):
    """
    Epsilon-greedy agent with a single zero-initialised Q-table.

    This class serves as the base for the other epsilon-greedy agents
    (SARSA, DQN-lite), which override compute_td_target.

    Example:
        >>> agent = QLearningAgent(env, Hyperparameters(), rng)
        >>> action = agent.select_action((0, 0))
        >>> metrics = agent.update(experience)
    """

    algorithm = Algorithm.Q_LEARNING

    def __init__(
        self,
        env: GridWorldEnvironment,
        hyperparameters: Hyperparameters,
        rng: Optional[np.random.Generator] = None
    ) -> None:
        super().__init__(env, hyperparameters, rng)
        self.policy = EpsilonGreedyPolicy(
            epsilon_start=hyperparameters.epsilon_start,
            epsilon_end=hyperparameters.epsilon_end,
            epsilon_decay=hyperparameters.epsilon_decay,
        )

    @property
    def exploration_name(self) -> str:
        return "epsilon"

    @property
    def exploration_rate(self) -> float:
        return self.policy.epsilon

    @property
    def epsilon(self) -> float:
        return self.policy.epsilon

    def select_action(self, state: State, training: bool = True) -> int:
        """
        Select action using epsilon-greedy policy.

        With probability epsilon, select a random action. Otherwise select
        the action with the highest value, first one in canonical order on
        ties.
        """
        return self.policy.select(self.values.action_values(state), self.rng, training)

    def compute_td_target(
        self,
        reward: float,
        next_state: State,
        done: bool,
        next_action: Optional[int] = None
    ) -> float:
        """
        Compute TD target value.

        Q-learning target:
            y = r + gamma * max_a Q(s', a)

        Overridden by subclasses (SARSA uses the chosen next action,
        DQN-lite bootstraps off the target table through bootstrap_values).
        """
        if done:
            return reward
        return reward + self.gamma * float(np.max(self.values.bootstrap_values(next_state)))

    def _apply(self, experience: Experience, next_action: Optional[int] = None) -> float:
        """TD update on the live table; returns the TD error."""
        target = self.compute_td_target(
            experience.reward, experience.next_state, experience.done, next_action
        )
        td_error = self.values.td_update(
            "q", experience.state, experience.action, target, self.learning_rate
        )
        self.update_count += 1
        return td_error

    def update(
        self,
        experience: Experience,
        next_action: Optional[int] = None,
        batch: Optional[List[Experience]] = None
    ) -> Dict[str, Any]:
        """
        Perform one TD update for a real transition.

        Returns:
            Dictionary with metrics:
                - 'td_error': target - Q(s, a) before the update
                - 'loss': squared TD error
                - 'value_delta': absolute change applied to the table
                - 'epsilon': current exploration rate
        """
        td_error = self._apply(experience, next_action)
        return {
            'td_error': td_error,
            'loss': td_error ** 2,
            'value_delta': abs(self.learning_rate * td_error),
            'epsilon': self.policy.epsilon,
        }

    def end_episode(self) -> Dict[str, float]:
        """Decay exploration rate after each episode."""
        self.policy.decay()
        self.episode_count += 1
        return {'epsilon': self.policy.epsilon}
