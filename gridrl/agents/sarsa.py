"""
Tabular SARSA agent.

SARSA (State-Action-Reward-State-Action) is an on-policy TD learning
algorithm that uses the actual next action taken (rather than max)
for computing TD targets.

Key difference from Q-learning:
- Q-learning (off-policy): Q(s,a) <- r + gamma * max_a' Q(s', a')
- SARSA (on-policy):       Q(s,a) <- r + gamma * Q(s', a')  where a' is the actual next action
"""

from typing import Any, Dict, Optional

from ..envs.gridworld import State
from ..utils.config_schema import Algorithm
from .q_learning import QLearningAgent


class SARSAAgent(QLearningAgent):
    """
    Tabular SARSA agent (on-policy TD learning).

    The trainer selects the next action before calling update() and then
    executes exactly that action on the following step, so the target is
    always built from the behaviour policy.

    Note:
        update() must receive next_action for non-terminal transitions.
    """

    algorithm = Algorithm.SARSA
    is_on_policy = True

    def compute_td_target(
        self,
        reward: float,
        next_state: State,
        done: bool,
        next_action: Optional[int] = None
    ) -> float:
        """
        Compute SARSA TD target using the actual next action.

        SARSA target:
            y = r + gamma * Q(s', a')

        Raises:
            ValueError: If next_action is missing for a non-terminal transition
        """
        if done:
            return reward
        if next_action is None:
            raise ValueError(
                "SARSA requires next_action for TD target computation "
                "of a non-terminal transition."
            )
        return reward + self.gamma * self.values["q"].get(next_state, next_action)

    def get_config(self) -> Dict[str, Any]:
        config = super().get_config()
        config['is_on_policy'] = True
        return config
