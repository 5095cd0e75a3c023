"""
Configuration schema and validation for grid-world training sessions.

This module provides:
- Algorithm: tagged variant selecting the update rule
- Dataclass schemas for every config section
- Validation logic to catch invalid hyperparameters before a session exists
- validate_config() to check an entire Hydra/OmegaConf config

Usage:
    from gridrl.utils.config_schema import validate_config
    validate_config(config)  # Raises ConfigurationError if invalid
"""

import logging
import math
from dataclasses import dataclass, fields, asdict
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np
from omegaconf import DictConfig, OmegaConf

from ..envs.gridworld import NUM_ACTIONS


logger = logging.getLogger("gridrl.config")


class ConfigurationError(Exception):
    """Raised when a grid layout or hyperparameter set is invalid."""
    pass


class Algorithm(str, Enum):
    """Learning rule driven by the trainer."""
    Q_LEARNING = "q_learning"
    SARSA = "sarsa"
    DQN_LITE = "dqn_lite"
    SAC_LITE = "sac_lite"

    @classmethod
    def parse(cls, value: Union[str, "Algorithm"]) -> "Algorithm":
        """
        Resolve an algorithm from its value or a loose spelling.

        Accepts "q_learning", "QLearning", "q-learning", "DQNLite", ...

        Raises:
            ConfigurationError: If the name matches no algorithm
        """
        if isinstance(value, cls):
            return value
        key = str(value).lower().replace("-", "").replace("_", "").replace(" ", "")
        for algorithm in cls:
            if algorithm.value.replace("_", "") == key:
                return algorithm
        available = [a.value for a in cls]
        raise ConfigurationError(
            f"Unknown algorithm: '{value}'. Available: {available}"
        )

    @property
    def uses_epsilon(self) -> bool:
        return self is not Algorithm.SAC_LITE


# =============================================================================
# Config Dataclasses with Validation
# =============================================================================

def _as_cell(value: Any, name: str) -> Tuple[int, int]:
    try:
        x, y = value
        return int(x), int(y)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an (x, y) pair, got {value!r}")


@dataclass
class GridConfig:
    """Grid layout schema."""
    width: int
    height: int
    obstacles: List[Tuple[int, int]]
    goal: Tuple[int, int]
    start: Tuple[int, int] = (0, 0)

    def __post_init__(self):
        # Validate dimensions
        if not isinstance(self.width, int) or self.width < 1:
            raise ConfigurationError(f"width must be a positive integer, got {self.width}")
        if not isinstance(self.height, int) or self.height < 1:
            raise ConfigurationError(f"height must be a positive integer, got {self.height}")

        self.goal = _as_cell(self.goal, "goal")
        self.start = _as_cell(self.start, "start")
        self.obstacles = [_as_cell(o, "obstacle") for o in self.obstacles]

        # Validate cells lie on the grid
        for name, cell in [("goal", self.goal), ("start", self.start)]:
            if not self._in_bounds(cell):
                raise ConfigurationError(
                    f"{name} {cell} is outside the {self.width}x{self.height} grid"
                )
        for cell in self.obstacles:
            if not self._in_bounds(cell):
                raise ConfigurationError(
                    f"obstacle {cell} is outside the {self.width}x{self.height} grid"
                )

        # Validate goal/start placement
        if self.goal in self.obstacles:
            raise ConfigurationError(f"goal {self.goal} coincides with an obstacle")
        if self.start in self.obstacles:
            raise ConfigurationError(f"start {self.start} coincides with an obstacle")
        if self.start == self.goal:
            raise ConfigurationError(f"start and goal must differ, both are {self.goal}")

    def _in_bounds(self, cell: Tuple[int, int]) -> bool:
        return 0 <= cell[0] < self.width and 0 <= cell[1] < self.height


INTEGER_HYPERPARAMETERS = ("buffer_capacity", "batch_size", "target_sync_interval", "max_steps")


@dataclass
class Hyperparameters:
    """
    Learning hyperparameters shared by all algorithms.

    Fields an algorithm does not use are carried but ignored (e.g. the
    buffer settings outside DQN-lite, the temperature settings outside
    SAC-lite).
    """
    alpha: float = 0.1
    gamma: float = 0.9
    epsilon_start: float = 0.3
    epsilon_end: float = 0.01
    epsilon_decay: float = 0.99
    buffer_capacity: int = 100
    batch_size: int = 8
    target_sync_interval: int = 10
    target_entropy: float = 0.2
    auto_temperature: bool = True
    initial_temperature: float = 0.2
    temperature_min: float = 0.01
    temperature_lr: float = 0.01
    max_steps: int = 50

    def __post_init__(self):
        # Counts and sizes must be whole numbers
        for name in INTEGER_HYPERPARAMETERS:
            value = getattr(self, name)
            if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, np.integer)):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
            setattr(self, name, int(value))

        # Validate alpha (learning rate)
        if not 0 < self.alpha <= 1:
            raise ConfigurationError(f"alpha must be in (0, 1], got {self.alpha}")

        # Validate gamma
        if not 0 <= self.gamma <= 1:
            raise ConfigurationError(f"gamma must be in [0, 1], got {self.gamma}")

        # Validate epsilon values
        if not 0 <= self.epsilon_start <= 1:
            raise ConfigurationError(
                f"epsilon_start must be in [0, 1], got {self.epsilon_start}"
            )
        if not 0 <= self.epsilon_end <= 1:
            raise ConfigurationError(
                f"epsilon_end must be in [0, 1], got {self.epsilon_end}"
            )
        if self.epsilon_end > self.epsilon_start:
            raise ConfigurationError(
                f"epsilon_end ({self.epsilon_end}) must be <= epsilon_start ({self.epsilon_start})"
            )
        if not 0 < self.epsilon_decay <= 1:
            raise ConfigurationError(
                f"epsilon_decay must be in (0, 1], got {self.epsilon_decay}"
            )

        # Validate replay settings
        if not self.buffer_capacity >= 1:
            raise ConfigurationError(
                f"buffer_capacity must be >= 1, got {self.buffer_capacity}"
            )
        if not self.batch_size >= 1:
            raise ConfigurationError(f"batch_size must be >= 1, got {self.batch_size}")
        if not self.target_sync_interval >= 1:
            raise ConfigurationError(
                f"target_sync_interval must be >= 1, got {self.target_sync_interval}"
            )

        # Validate temperature settings
        max_entropy = math.log(NUM_ACTIONS)
        if not 0 <= self.target_entropy <= max_entropy:
            raise ConfigurationError(
                f"target_entropy must be in [0, {max_entropy:.4f}], got {self.target_entropy}"
            )
        if not 0 < self.initial_temperature <= 1:
            raise ConfigurationError(
                f"initial_temperature must be in (0, 1], got {self.initial_temperature}"
            )
        if not 0 < self.temperature_min <= self.initial_temperature:
            raise ConfigurationError(
                f"temperature_min must be in (0, initial_temperature], got {self.temperature_min}"
            )
        if not self.temperature_lr >= 0:
            raise ConfigurationError(
                f"temperature_lr must be >= 0, got {self.temperature_lr}"
            )

        # Validate step cap
        if not self.max_steps >= 1:
            raise ConfigurationError(f"max_steps must be >= 1, got {self.max_steps}")

    @classmethod
    def for_algorithm(
        cls,
        algorithm: Union[str, Algorithm],
        overrides: Optional[Mapping[str, Any]] = None
    ) -> "Hyperparameters":
        """
        Build hyperparameters from the algorithm defaults plus overrides.

        Raises:
            ConfigurationError: On unknown keys or out-of-range values
        """
        values = default_hyperparameters(algorithm)
        if overrides:
            if isinstance(overrides, DictConfig):
                overrides = OmegaConf.to_container(overrides, resolve=True)
            known = {f.name for f in fields(cls)}
            unknown = sorted(set(overrides) - known)
            if unknown:
                raise ConfigurationError(f"Unknown hyperparameters: {unknown}")
            values.update(overrides)
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Defaults taken per algorithm; anything not listed falls back to the dataclass
ALGORITHM_DEFAULTS: Dict[Algorithm, Dict[str, Any]] = {
    Algorithm.Q_LEARNING: {
        "alpha": 0.1, "gamma": 0.9,
        "epsilon_start": 0.3, "epsilon_end": 0.01, "epsilon_decay": 0.99,
    },
    Algorithm.SARSA: {
        "alpha": 0.1, "gamma": 0.9,
        "epsilon_start": 0.3, "epsilon_end": 0.01, "epsilon_decay": 0.99,
    },
    Algorithm.DQN_LITE: {
        "alpha": 0.1, "gamma": 0.99,
        "epsilon_start": 1.0, "epsilon_end": 0.01, "epsilon_decay": 0.995,
        "buffer_capacity": 100, "batch_size": 8, "target_sync_interval": 10,
    },
    Algorithm.SAC_LITE: {
        "alpha": 0.1, "gamma": 0.99,
        "target_entropy": 0.2, "auto_temperature": True,
        "initial_temperature": 0.2, "temperature_min": 0.01,
    },
}


def default_hyperparameters(algorithm: Union[str, Algorithm]) -> Dict[str, Any]:
    """Default hyperparameter values for an algorithm as a plain dict."""
    algorithm = Algorithm.parse(algorithm)
    values = {f.name: f.default for f in fields(Hyperparameters)}
    values.update(ALGORITHM_DEFAULTS[algorithm])
    return values


@dataclass
class TrainingConfig:
    """Training loop schema."""
    num_episodes: int
    eval_freq: int = 50
    eval_episodes: int = 5

    def __post_init__(self):
        if not self.num_episodes >= 1:
            raise ConfigurationError(
                f"num_episodes must be >= 1, got {self.num_episodes}"
            )
        if not self.eval_freq >= 1:
            raise ConfigurationError(f"eval_freq must be >= 1, got {self.eval_freq}")
        if not 1 <= self.eval_episodes <= 100:
            raise ConfigurationError(
                f"eval_episodes must be in [1, 100], got {self.eval_episodes}"
            )


@dataclass
class LoggingConfig:
    """Logging configuration schema."""
    csv_log: bool
    log_freq: int
    level: str = "INFO"
    flush_every: int = 10

    def __post_init__(self):
        if not self.log_freq >= 1:
            raise ConfigurationError(f"log_freq must be >= 1, got {self.log_freq}")

        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if self.level.upper() not in valid_levels:
            raise ConfigurationError(
                f"logging.level must be one of {valid_levels}, got '{self.level}'"
            )

        if not 1 <= self.flush_every <= 100:
            raise ConfigurationError(
                f"flush_every must be in [1, 100], got {self.flush_every}"
            )


# =============================================================================
# Section builders
# =============================================================================

def grid_from_config(config: DictConfig) -> GridConfig:
    """Build a GridConfig from the env section."""
    env = config.env
    return GridConfig(
        width=env.width,
        height=env.height,
        obstacles=[tuple(o) for o in env.obstacles],
        goal=tuple(env.goal),
        start=tuple(env.get('start', (0, 0))),
    )


def hyperparameters_from_config(config: DictConfig) -> Hyperparameters:
    """Build Hyperparameters from the agent, buffer and env sections."""
    agent = OmegaConf.to_container(config.agent, resolve=True)
    algorithm = agent.pop('algorithm')

    # null entries fall back to the algorithm defaults
    overrides = {k: v for k, v in agent.items() if v is not None}
    if 'buffer' in config:
        if config.buffer.get('capacity') is not None:
            overrides['buffer_capacity'] = config.buffer.capacity
        if config.buffer.get('batch_size') is not None:
            overrides['batch_size'] = config.buffer.batch_size
    if config.env.get('max_steps') is not None:
        overrides['max_steps'] = config.env.max_steps

    return Hyperparameters.for_algorithm(algorithm, overrides)


# =============================================================================
# Main Validation Function
# =============================================================================

def validate_config(config: DictConfig) -> None:
    """
    Validate entire configuration.

    Checks all sections and raises a single ConfigurationError listing
    every problem found.

    Args:
        config: Hydra DictConfig to validate

    Raises:
        ConfigurationError: If any config value is invalid

    Example:
        >>> from omegaconf import OmegaConf
        >>> config = OmegaConf.load("configs/default.yaml")
        >>> validate_config(config)  # Raises if invalid
    """
    errors = []

    # Validate env section
    try:
        grid_from_config(config)
    except ConfigurationError as e:
        errors.append(f"[env] {e}")
    except Exception as e:
        errors.append(f"[env] Unexpected error: {e}")

    # Validate agent section (includes buffer and step cap)
    try:
        Algorithm.parse(config.agent.algorithm)
        hyperparameters_from_config(config)
    except ConfigurationError as e:
        errors.append(f"[agent] {e}")
    except Exception as e:
        errors.append(f"[agent] Unexpected error: {e}")

    # Validate training section
    try:
        TrainingConfig(
            num_episodes=config.training.num_episodes,
            eval_freq=config.training.get('eval_freq', 50),
            eval_episodes=config.training.get('eval_episodes', 5),
        )
    except ConfigurationError as e:
        errors.append(f"[training] {e}")
    except Exception as e:
        errors.append(f"[training] Unexpected error: {e}")

    # Validate logging section
    try:
        LoggingConfig(
            csv_log=config.logging.csv_log,
            log_freq=config.logging.log_freq,
            level=config.logging.get('level', 'INFO'),
            flush_every=config.logging.get('flush_every', 10),
        )
    except ConfigurationError as e:
        errors.append(f"[logging] {e}")
    except Exception as e:
        errors.append(f"[logging] Unexpected error: {e}")

    # Validate seed
    seed = config.get('seed')
    if not isinstance(seed, int) or seed < 0:
        errors.append(f"[seed] seed must be a non-negative integer, got {seed}")

    # Raise all errors together
    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)

    logger.debug("Configuration validated")


def print_config_summary(config: DictConfig) -> None:
    """
    Print a formatted summary of the configuration.

    Args:
        config: Hydra DictConfig to summarize
    """
    print("=" * 60)
    print("CONFIGURATION SUMMARY")
    print("=" * 60)
    print(f"Algorithm:  {config.agent.algorithm} (alpha={config.agent.alpha}, gamma={config.agent.gamma})")
    print(f"Grid:       {config.env.width}x{config.env.height}, goal={list(config.env.goal)}")
    print(f"Obstacles:  {len(config.env.obstacles)}")
    print(f"Episodes:   {config.training.num_episodes}")
    print(f"Buffer:     {config.buffer.capacity} (batch {config.buffer.batch_size})")
    print(f"Seed:       {config.seed}")
    print("=" * 60)
