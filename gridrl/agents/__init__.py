"""
Agent implementations for tabular reinforcement learning.

Available agents:
- QLearningAgent: Off-policy Q-learning
- SARSAAgent: On-policy SARSA
- DQNLiteAgent: Q-learning with experience replay and a target table
- SACLiteAgent: Tabular soft actor-critic with twin critics
"""

from .base import BaseAgent
from .q_learning import QLearningAgent
from .sarsa import SARSAAgent
from .dqn import DQNLiteAgent
from .sac import SACLiteAgent
from .value_store import StoreMode, ValueStore, ValueTable
from .policies import (
    EpsilonGreedyPolicy,
    StochasticPolicyStore,
    TemperatureController,
    greedy_action,
)

__all__ = [
    "BaseAgent",
    "QLearningAgent",
    "SARSAAgent",
    "DQNLiteAgent",
    "SACLiteAgent",
    "StoreMode",
    "ValueStore",
    "ValueTable",
    "EpsilonGreedyPolicy",
    "StochasticPolicyStore",
    "TemperatureController",
    "greedy_action",
]
