"""
Factory functions for building agents, buffers and trainers.

This module provides:
- create_agent: Instantiate the agent class registered for an algorithm
- build_agent: Create an agent from a Hydra config
- build_buffer: Create the replay buffer (DQN-lite only) from a Hydra config
- build_trainer: Create a configured Trainer from a Hydra config

These factories enable the config-driven pipeline where experiments
are defined entirely through YAML configuration files.
"""

from typing import Any, Dict, List, Optional, Union

import numpy as np
from omegaconf import DictConfig

from ..agents.base import BaseAgent
from ..agents.dqn import DQNLiteAgent
from ..agents.q_learning import QLearningAgent
from ..agents.sac import SACLiteAgent
from ..agents.sarsa import SARSAAgent
from ..envs.gridworld import GridWorldEnvironment
from .config_schema import (
    Algorithm,
    ConfigurationError,
    Hyperparameters,
    hyperparameters_from_config,
)
from .replay_buffer import ReplayBuffer


# Registry of available agent types
AGENT_REGISTRY = {
    Algorithm.Q_LEARNING: QLearningAgent,
    Algorithm.SARSA: SARSAAgent,
    Algorithm.DQN_LITE: DQNLiteAgent,
    Algorithm.SAC_LITE: SACLiteAgent,
}


def create_agent(
    algorithm: Union[str, Algorithm],
    env: GridWorldEnvironment,
    hyperparameters: Hyperparameters,
    rng: Optional[np.random.Generator] = None
) -> BaseAgent:
    """
    Instantiate the agent registered for algorithm.

    Raises:
        ConfigurationError: If the algorithm is not recognised
    """
    agent_cls = AGENT_REGISTRY[Algorithm.parse(algorithm)]
    return agent_cls(env, hyperparameters, rng)


def build_agent(
    config: DictConfig,
    env: GridWorldEnvironment,
    rng: Optional[np.random.Generator] = None
) -> BaseAgent:
    """
    Build an agent from Hydra configuration.

    Supports the following agent types:
    - 'q_learning': Off-policy tabular Q-learning
    - 'sarsa': On-policy tabular SARSA
    - 'dqn_lite': Q-learning with replay and a target table
    - 'sac_lite': Tabular soft actor-critic

    Args:
        config: Hydra DictConfig with agent (and buffer/env) settings
        env: Grid world the agent will act in
        rng: Random generator shared with the trainer

    Returns:
        Initialized agent instance

    Raises:
        ConfigurationError: If the agent type or a hyperparameter is invalid

    Example:
        >>> from omegaconf import OmegaConf
        >>> config = OmegaConf.load("configs/default.yaml")
        >>> agent = build_agent(config, make_gridworld_env())
    """
    hyperparameters = hyperparameters_from_config(config)
    return create_agent(config.agent.algorithm, env, hyperparameters, rng)


def build_buffer(
    config: DictConfig,
    rng: Optional[np.random.Generator] = None
) -> Optional[ReplayBuffer]:
    """
    Build a replay buffer from Hydra configuration.

    Only replay-based agents get a buffer; for the others this returns None.

    Example:
        >>> buffer = build_buffer(config)  # config.agent.algorithm == 'dqn_lite'
        >>> buffer.capacity
        100
    """
    algorithm = Algorithm.parse(config.agent.algorithm)
    if not AGENT_REGISTRY[algorithm].uses_replay:
        return None
    hyperparameters = hyperparameters_from_config(config)
    return ReplayBuffer(capacity=hyperparameters.buffer_capacity, rng=rng)


def build_trainer(config: DictConfig) -> Any:
    """Create a configured Trainer from a full Hydra configuration."""
    from ..training.trainer import Trainer

    return Trainer.from_config(config)


def get_agent_info(agent_type: Union[str, Algorithm]) -> Dict[str, Any]:
    """
    Get information about an agent type.

    Args:
        agent_type: Algorithm name or Algorithm member

    Returns:
        Dictionary with agent metadata
    """
    info = {
        Algorithm.Q_LEARNING: {
            'name': 'Q-Learning',
            'reference': 'Watkins & Dayan, 1992',
            'description': 'Off-policy TD bootstrapping off the greedy next value',
            'value_tables': ['q'],
            'exploration': 'epsilon',
        },
        Algorithm.SARSA: {
            'name': 'SARSA',
            'reference': 'Rummery & Niranjan, 1994',
            'description': 'On-policy TD using the actual next action',
            'value_tables': ['q'],
            'exploration': 'epsilon',
        },
        Algorithm.DQN_LITE: {
            'name': 'DQN-lite',
            'reference': 'Mnih et al., 2015 (tabular)',
            'description': 'Q-learning with experience replay and a periodically synced target table',
            'value_tables': ['q', 'target'],
            'exploration': 'epsilon',
        },
        Algorithm.SAC_LITE: {
            'name': 'SAC-lite',
            'reference': 'Haarnoja et al., 2018 (tabular)',
            'description': 'Twin critics, soft values and a Boltzmann policy with entropy temperature',
            'value_tables': ['q1', 'q2'],
            'exploration': 'temperature',
        },
    }

    try:
        return info[Algorithm.parse(agent_type)]
    except ConfigurationError:
        return {'name': 'Unknown', 'description': 'N/A'}


def list_agents() -> List[str]:
    """List all available agent types."""
    return [algorithm.value for algorithm in AGENT_REGISTRY]
