"""
Episode orchestration for the grid-world agents.

This module provides:
- TrainerState: episode lifecycle states
- StepResult: outcome of one environment step plus update diagnostics
- EpisodeSummary: per-episode statistics
- Trainer: configure / reset / step_once / run_episode / train / snapshot

One Trainer drives any of the four algorithms; the algorithm is picked at
configure() time and only the agent's update rule differs between them.
Everything runs synchronously on the calling thread. The only cross-thread
entry point is cancel(), which is honoured between episodes of train().
"""

import logging
import threading
from dataclasses import dataclass, asdict, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import numpy as np
from omegaconf import DictConfig

from ..agents.base import BaseAgent
from ..envs.gridworld import GridWorldEnvironment, State, action_name
from ..utils.config_schema import (
    Algorithm,
    ConfigurationError,
    GridConfig,
    Hyperparameters,
    grid_from_config,
    hyperparameters_from_config,
)
from ..utils.factory import create_agent
from ..utils.logging import MetricsTracker
from ..utils.replay_buffer import Experience, ReplayBuffer


logger = logging.getLogger("gridrl.trainer")


class TrainerState(str, Enum):
    """Episode lifecycle."""
    IDLE = "idle"
    EPISODE_RUNNING = "episode_running"
    GOAL_REACHED = "goal_reached"
    STEP_LIMIT_REACHED = "step_limit_reached"
    EPISODE_DONE = "episode_done"


@dataclass
class StepResult:
    """One transition as seen by a caller of step_once()."""
    state: State
    action: int
    reward: float
    next_state: State
    done: bool
    truncated: bool
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    @property
    def action_name(self) -> str:
        return action_name(self.action)

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["state"] = list(self.state)
        result["next_state"] = list(self.next_state)
        return result


@dataclass
class EpisodeSummary:
    """
    Statistics for one finished episode.

    exploration is epsilon (or the temperature for SAC-lite) after the
    end-of-episode decay or tuning. max_value_delta is the largest absolute
    single-step change to any value table during the episode.
    """
    episode: int
    steps: int
    total_reward: float
    reached_goal: bool
    termination: str
    exploration: float
    max_value_delta: float
    mean_td_error: float
    mean_entropy: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Trainer:
    """
    Configurable training engine.

    Lifecycle:
        IDLE -> EPISODE_RUNNING -> GOAL_REACHED | STEP_LIMIT_REACHED
             -> EPISODE_DONE -> (next episode) EPISODE_RUNNING ...

    The terminal state of an episode is recorded in its summary, then the
    trainer settles in EPISODE_DONE until the next step begins a new
    episode. reset() returns to IDLE with a fresh session.

    Example:
        >>> trainer = Trainer()
        >>> trainer.configure(5, 5, [(1, 1), (2, 1)], goal=(4, 4),
        ...                   algorithm="q_learning", seed=0)
        >>> summaries = trainer.train(50)
        >>> trainer.snapshot()["episode_count"]
        50
    """

    def __init__(self) -> None:
        self._grid: Optional[GridConfig] = None
        self._algorithm: Optional[Algorithm] = None
        self._hyperparameters: Optional[Hyperparameters] = None
        self._seed: Optional[int] = None

        self.env: Optional[GridWorldEnvironment] = None
        self.agent: Optional[BaseAgent] = None
        self.buffer: Optional[ReplayBuffer] = None
        self.rng: Optional[np.random.Generator] = None

        self._cancel_event = threading.Event()
        self._clear_session()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def configure(
        self,
        grid_width: int,
        grid_height: int,
        obstacles: Iterable[Tuple[int, int]],
        goal: Tuple[int, int],
        algorithm: Union[str, Algorithm],
        hyperparameters: Optional[Union[Hyperparameters, Mapping[str, Any]]] = None,
        start: Tuple[int, int] = (0, 0),
        seed: Optional[int] = None
    ) -> "Trainer":
        """
        Validate a full configuration and start a fresh session with it.

        Args:
            grid_width: Number of columns
            grid_height: Number of rows
            obstacles: Blocked (x, y) cells
            goal: Terminal cell
            algorithm: Algorithm member or name ("q_learning", "SARSA", ...)
            hyperparameters: Hyperparameters instance, or a mapping of
                overrides on top of the algorithm defaults
            start: Start cell
            seed: Seed for the session random generator

        Returns:
            self

        Raises:
            ConfigurationError: Listing every problem found. The trainer is
                left exactly as it was before the call.
        """
        errors = []
        grid = parsed_algorithm = params = None

        try:
            grid = GridConfig(
                width=grid_width,
                height=grid_height,
                obstacles=list(obstacles),
                goal=goal,
                start=start,
            )
        except ConfigurationError as e:
            errors.append(f"[grid] {e}")
        except TypeError as e:
            errors.append(f"[grid] invalid layout: {e}")

        try:
            parsed_algorithm = Algorithm.parse(algorithm)
        except ConfigurationError as e:
            errors.append(f"[algorithm] {e}")

        if isinstance(hyperparameters, Hyperparameters):
            params = hyperparameters
        elif parsed_algorithm is not None:
            try:
                params = Hyperparameters.for_algorithm(parsed_algorithm, hyperparameters)
            except ConfigurationError as e:
                errors.append(f"[hyperparameters] {e}")
            except TypeError as e:
                errors.append(f"[hyperparameters] {e}")

        if seed is not None and (not isinstance(seed, (int, np.integer)) or seed < 0):
            errors.append(f"[seed] seed must be a non-negative integer, got {seed!r}")

        seed = None if seed is None or errors else int(seed)

        # Build the new session before touching the current one
        session = None
        if not errors:
            try:
                session = self._build_session(grid, parsed_algorithm, params, seed)
            except (TypeError, ValueError) as e:
                errors.append(f"[hyperparameters] {e}")

        if errors:
            raise ConfigurationError(
                "Invalid trainer configuration:\n" + "\n".join(f"  - {e}" for e in errors)
            )

        self._grid = grid
        self._algorithm = parsed_algorithm
        self._hyperparameters = params
        self._seed = seed

        logger.info(
            f"Configured {parsed_algorithm.value} on a {grid.width}x{grid.height} grid "
            f"({len(grid.obstacles)} obstacles, goal={grid.goal}, seed={self._seed})"
        )
        self._install_session(*session)
        return self

    @classmethod
    def from_config(cls, config: DictConfig) -> "Trainer":
        """
        Build a configured trainer from a Hydra/OmegaConf config.

        Uses the env, agent and buffer sections plus seed.
        """
        try:
            grid = grid_from_config(config)
            params = hyperparameters_from_config(config)
        except ConfigurationError as e:
            raise ConfigurationError(f"Invalid trainer configuration: {e}") from e

        trainer = cls()
        trainer.configure(
            grid_width=grid.width,
            grid_height=grid.height,
            obstacles=grid.obstacles,
            goal=grid.goal,
            algorithm=config.agent.algorithm,
            hyperparameters=params,
            start=grid.start,
            seed=config.get('seed'),
        )
        return trainer

    @property
    def is_configured(self) -> bool:
        return self._grid is not None

    @property
    def algorithm(self) -> Optional[Algorithm]:
        return self._algorithm

    @property
    def hyperparameters(self) -> Optional[Hyperparameters]:
        return self._hyperparameters

    def _require_configured(self) -> None:
        if not self.is_configured:
            raise ConfigurationError("Trainer is not configured; call configure() first")

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def _clear_session(self) -> None:
        self.state = TrainerState.IDLE
        self.position: Optional[State] = None
        self.step_count = 0
        self.total_reward = 0.0
        self.episode_count = 0
        self.total_steps = 0
        self.history: List[EpisodeSummary] = []
        self.last_summary: Optional[EpisodeSummary] = None
        self._pending_action: Optional[int] = None
        self._sequence = 0
        self._episode_metrics = MetricsTracker()

    def reset(self) -> None:
        """
        Start a fresh session.

        Rebuilds the environment, agent, value/policy stores and replay
        buffer, reseeds the random generator and zeroes all counters.
        """
        self._require_configured()
        self._install_session(*self._build_session(
            self._grid, self._algorithm, self._hyperparameters, self._seed
        ))

    @staticmethod
    def _build_session(
        grid: GridConfig,
        algorithm: Algorithm,
        params: Hyperparameters,
        seed: Optional[int]
    ) -> Tuple[np.random.Generator, GridWorldEnvironment, BaseAgent, Optional[ReplayBuffer]]:
        rng = np.random.default_rng(seed)
        env = GridWorldEnvironment(
            width=grid.width,
            height=grid.height,
            obstacles=grid.obstacles,
            goal=grid.goal,
            start=grid.start,
            max_steps=params.max_steps,
        )
        agent = create_agent(algorithm, env, params, rng)
        buffer = None
        if agent.uses_replay:
            buffer = ReplayBuffer(params.buffer_capacity, rng=rng)
        return rng, env, agent, buffer

    def _install_session(
        self,
        rng: np.random.Generator,
        env: GridWorldEnvironment,
        agent: BaseAgent,
        buffer: Optional[ReplayBuffer]
    ) -> None:
        self.rng = rng
        self.env = env
        self.agent = agent
        self.buffer = buffer
        self._cancel_event.clear()
        self._clear_session()
        logger.debug(f"Session reset: {self.agent}")

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def _begin_episode(self) -> None:
        self.position = self.env.start
        self.step_count = 0
        self.total_reward = 0.0
        self._pending_action = None
        self._episode_metrics.reset()
        self.state = TrainerState.EPISODE_RUNNING

    def step_once(self) -> StepResult:
        """
        Advance the current episode by one step, starting one if needed.

        Selects an action, moves, applies the agent's update (with a
        sampled replay batch for DQN-lite) and, when the step ends the
        episode, finalises it.

        Returns:
            StepResult with algorithm-specific diagnostics

        Raises:
            ConfigurationError: If the trainer is not configured
            InvalidStateError: If a computed next state is illegal
        """
        self._require_configured()
        if self.state is not TrainerState.EPISODE_RUNNING:
            self._begin_episode()

        env = self.env
        agent = self.agent
        state = self.position

        # SARSA commits to the action picked during the previous update
        if self._pending_action is not None:
            action = self._pending_action
        else:
            action = agent.select_action(state, training=True)

        next_state = env.validate_state(env.transition(state, action))
        reward = env.reward(next_state)
        done = env.is_terminal(next_state)
        self.step_count += 1
        self.total_steps += 1
        truncated = not done and self.step_count >= env.max_steps

        experience = Experience(state, action, reward, next_state, done, self._sequence)
        self._sequence += 1

        next_action = None
        if agent.is_on_policy and not done:
            next_action = agent.select_action(next_state, training=True)

        batch = None
        if self.buffer is not None:
            self.buffer.push(experience)
            batch_size = self._hyperparameters.batch_size
            if self.buffer.is_ready(batch_size):
                batch = self.buffer.sample(batch_size)

        diagnostics = agent.update(experience, next_action=next_action, batch=batch)
        if self.buffer is not None:
            diagnostics['buffer_size'] = len(self.buffer)

        self._episode_metrics.update_many(diagnostics)
        self._pending_action = next_action
        self.total_reward += reward
        self.position = next_state

        if done:
            self.state = TrainerState.GOAL_REACHED
        elif truncated:
            self.state = TrainerState.STEP_LIMIT_REACHED

        result = StepResult(
            state=state,
            action=int(action),
            reward=float(reward),
            next_state=next_state,
            done=done,
            truncated=truncated,
            diagnostics=diagnostics,
        )

        if done or truncated:
            self._finish_episode()
        return result

    def _finish_episode(self) -> EpisodeSummary:
        termination = self.state
        reached_goal = termination is TrainerState.GOAL_REACHED
        schedule = self.agent.end_episode()
        self.episode_count += 1

        metrics = self._episode_metrics
        mean_entropy = None
        if 'entropy' in metrics.metrics:
            mean_entropy = metrics.get_stats('entropy')['mean']

        summary = EpisodeSummary(
            episode=self.episode_count,
            steps=self.step_count,
            total_reward=float(self.total_reward),
            reached_goal=reached_goal,
            termination=termination.value,
            exploration=float(self.agent.exploration_rate),
            max_value_delta=metrics.get_stats('value_delta')['max'],
            mean_td_error=metrics.get_stats('td_error')['mean'],
            mean_entropy=mean_entropy,
        )
        self.history.append(summary)
        self.last_summary = summary
        self._pending_action = None
        self.state = TrainerState.EPISODE_DONE

        logger.debug(
            f"Episode {summary.episode} {summary.termination} | "
            f"steps={summary.steps} reward={summary.total_reward:.1f} | "
            f"{self.agent.exploration_name}={schedule[self.agent.exploration_name]:.4f}"
        )
        return summary

    def run_episode(self) -> EpisodeSummary:
        """
        Run one episode to completion.

        An episode already in progress (from earlier step_once() calls) is
        continued rather than restarted.
        """
        self._require_configured()
        if self.state is not TrainerState.EPISODE_RUNNING:
            self._begin_episode()
        while self.state is TrainerState.EPISODE_RUNNING:
            self.step_once()
        return self.last_summary

    def train(self, n_episodes: int) -> List[EpisodeSummary]:
        """
        Run n_episodes episodes back to back.

        Exploration decays (or the temperature is tuned) between episodes.
        A pending cancel() stops the loop before the next episode starts;
        an episode in flight always completes.

        Returns:
            Summaries of the episodes that ran
        """
        self._require_configured()
        if n_episodes < 0:
            raise ValueError(f"n_episodes must be >= 0, got {n_episodes}")

        summaries = []
        for _ in range(n_episodes):
            if self._cancel_event.is_set():
                self._cancel_event.clear()
                logger.info(
                    f"Training cancelled after {len(summaries)}/{n_episodes} episodes"
                )
                break
            summaries.append(self.run_episode())
        return summaries

    def cancel(self) -> None:
        """Ask a running train() to stop at the next episode boundary."""
        self._cancel_event.set()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """
        JSON-serialisable view of the session.

        Keys: algorithm, state, episode_count, step_count, position,
        value_tables, policy_tables (None unless SAC-lite), exploration
        ({name, value}), epsilon_or_temperature, buffer_size.
        """
        self._require_configured()
        agent_snapshot = self.agent.snapshot()
        return {
            "algorithm": self._algorithm.value,
            "state": self.state.value,
            "episode_count": self.episode_count,
            "step_count": self.step_count,
            "total_steps": self.total_steps,
            "position": None if self.position is None else list(self.position),
            "value_tables": agent_snapshot["value_tables"],
            "policy_tables": agent_snapshot["policy_tables"],
            "exploration": agent_snapshot["exploration"],
            "epsilon_or_temperature": agent_snapshot["exploration"]["value"],
            "buffer_size": None if self.buffer is None else len(self.buffer),
        }

    def __repr__(self) -> str:
        if not self.is_configured:
            return "Trainer(unconfigured)"
        return (
            f"Trainer(algorithm={self._algorithm.value}, state={self.state.value}, "
            f"episodes={self.episode_count})"
        )
