"""
SAC-lite agent: tabular soft actor-critic.

Maximum-entropy TD control with:
- Twin critics q1 and q2, both trained toward the same soft target;
  the minimum of the two is used everywhere a value is consumed
- A per-state stochastic policy (Boltzmann over the min critic)
- An entropy temperature, optionally auto-tuned toward a target entropy

Soft target:
    y = r + gamma * V_soft(s')          (y = r at terminal transitions)
    V_soft(s) = sum_a pi(a|s) * (min Q(s,a) - T * log pi(a|s))

Policy loss:
    L_pi = -(E_pi[min Q(s, .)] + T * H(pi(.|s)))
"""

from typing import Any, Dict, List, Optional

import numpy as np

from ..envs.gridworld import ACTION_NAMES, GridWorldEnvironment, State
from ..utils.config_schema import Algorithm, Hyperparameters
from ..utils.replay_buffer import Experience
from .base import BaseAgent
from .policies import StochasticPolicyStore, TemperatureController
from .value_store import StoreMode


class SACLiteAgent(BaseAgent):
    """
    Tabular soft actor-critic.

    Critics start uniformly random in [-2.5, 2.5] and every policy starts
    uniform. Each update trains both critics, then re-derives the policy at
    the visited state. The temperature is tuned once per episode from the
    mean entropy of the states updated during that episode.

    Args:
        env: Grid world
        hyperparameters: Uses alpha (critic step size), gamma,
            initial_temperature, temperature_min, temperature_lr,
            target_entropy and auto_temperature
        rng: Random generator
    """

    algorithm = Algorithm.SAC_LITE
    store_mode = StoreMode.TWIN
    init_scale = 5.0

    def __init__(
        self,
        env: GridWorldEnvironment,
        hyperparameters: Hyperparameters,
        rng: Optional[np.random.Generator] = None
    ) -> None:
        super().__init__(env, hyperparameters, rng)
        self.policy = StochasticPolicyStore(env.width, env.height)
        self.temperature_controller = TemperatureController(
            initial=hyperparameters.initial_temperature,
            minimum=hyperparameters.temperature_min,
            lr=hyperparameters.temperature_lr,
            target_entropy=hyperparameters.target_entropy,
            auto=hyperparameters.auto_temperature,
        )

        # Entropies of the policies updated in the current episode
        self._episode_entropies: List[float] = []
        self.last_temperature_loss = 0.0

    @property
    def exploration_name(self) -> str:
        return "temperature"

    @property
    def exploration_rate(self) -> float:
        return self.temperature_controller.temperature

    @property
    def temperature(self) -> float:
        return self.temperature_controller.temperature

    def select_action(self, state: State, training: bool = True) -> int:
        """Sample from pi(.|s) while training; most probable action otherwise."""
        if training:
            return self.policy.sample(state, self.rng)
        return self.policy.most_probable(state)

    def soft_value(self, state: State) -> float:
        return self.policy.soft_value(
            state, self.values.action_values(state), self.temperature
        )

    def compute_td_target(self, reward: float, next_state: State, done: bool) -> float:
        if done:
            return reward
        return reward + self.gamma * self.soft_value(next_state)

    def update(
        self,
        experience: Experience,
        next_action: Optional[int] = None,
        batch: Optional[List[Experience]] = None
    ) -> Dict[str, Any]:
        """
        Train both critics, then update the policy at the visited state.

        Returns:
            Dictionary with metrics:
                - 'td_error': mean of the two critics' TD errors
                - 'q1_loss', 'q2_loss': squared TD errors
                - 'loss': mean critic loss
                - 'value_delta': largest absolute critic change
                - 'entropy': policy entropy at the visited state
                - 'probabilities': {action_name: probability}
                - 'policy_loss': -(E_pi[min Q] + T * H)
                - 'temperature': current temperature
        """
        state = experience.state
        target = self.compute_td_target(
            experience.reward, experience.next_state, experience.done
        )

        q1_error = self.values.td_update("q1", state, experience.action, target, self.learning_rate)
        q2_error = self.values.td_update("q2", state, experience.action, target, self.learning_rate)
        self.update_count += 1

        min_q = self.values.action_values(state)
        probs, h = self.policy.update(state, min_q, self.temperature)
        policy_loss = -(float(np.dot(probs, min_q)) + self.temperature * h)
        self._episode_entropies.append(h)

        return {
            'td_error': 0.5 * (q1_error + q2_error),
            'q1_loss': q1_error ** 2,
            'q2_loss': q2_error ** 2,
            'loss': 0.5 * (q1_error ** 2 + q2_error ** 2),
            'value_delta': self.learning_rate * max(abs(q1_error), abs(q2_error)),
            'entropy': h,
            'probabilities': {name: float(p) for name, p in zip(ACTION_NAMES, probs)},
            'policy_loss': policy_loss,
            'temperature': self.temperature,
        }

    def end_episode(self) -> Dict[str, float]:
        """Tune the temperature from this episode's mean policy entropy."""
        if self._episode_entropies:
            mean_entropy = float(np.mean(self._episode_entropies))
            self.last_temperature_loss = self.temperature_controller.tune(mean_entropy)
        self._episode_entropies = []
        self.episode_count += 1
        return {
            'temperature': self.temperature,
            'temperature_loss': self.last_temperature_loss,
        }

    def policy_snapshot(self) -> Dict[str, Any]:
        return self.policy.to_dict()

    def get_config(self) -> Dict[str, Any]:
        config = super().get_config()
        config['temperature'] = self.temperature
        return config
