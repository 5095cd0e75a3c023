"""
Deterministic grid-world environment.

This module provides:
- Action constants in canonical tie-breaking order (up, down, left, right)
- GridWorldEnvironment: pure transition/reward functions plus a Gymnasium API
- make_gridworld_env: builder with the canonical 5x5 layout as default
"""

import logging
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

import numpy as np
import gymnasium as gym
from gymnasium import spaces


State = Tuple[int, int]

# Canonical action order; greedy ties resolve to the lowest index
UP, DOWN, LEFT, RIGHT = 0, 1, 2, 3
ACTIONS: Tuple[int, ...] = (UP, DOWN, LEFT, RIGHT)
ACTION_NAMES: Tuple[str, ...] = ("up", "down", "left", "right")
ACTION_ARROWS: Tuple[str, ...] = ("^", "v", "<", ">")
NUM_ACTIONS = len(ACTIONS)

# (dx, dy); y grows downwards
ACTION_DELTAS: Dict[int, Tuple[int, int]] = {
    UP: (0, -1),
    DOWN: (0, 1),
    LEFT: (-1, 0),
    RIGHT: (1, 0),
}

GOAL_REWARD = 100.0
OBSTACLE_REWARD = -50.0
STEP_REWARD = -1.0

DEFAULT_WIDTH = 5
DEFAULT_HEIGHT = 5
DEFAULT_OBSTACLES: Tuple[State, ...] = ((1, 1), (2, 1), (3, 1), (1, 3), (3, 3))
DEFAULT_GOAL: State = (4, 4)
DEFAULT_START: State = (0, 0)
DEFAULT_MAX_STEPS = 50

logger = logging.getLogger("gridrl.env")


class InvalidStateError(Exception):
    """Raised when a computed state leaves the grid or lands on an obstacle."""
    pass


def action_name(action: int) -> str:
    """Return the readable name of an action index."""
    return ACTION_NAMES[int(action)]


class GridWorldEnvironment(gym.Env):
    """
    Fixed grid with obstacles and a single goal cell.

    The pure functions (transition, reward, is_terminal) carry the whole
    dynamics and are what the trainer uses. The Gymnasium methods (reset,
    step, render) wrap them with an internal agent position and a step cap
    so the same world can be driven by standard RL tooling.

    Moves are clamped to the border. Moving into an obstacle leaves the
    agent where it was.

    Args:
        width: Number of columns
        height: Number of rows
        obstacles: Blocked cells as (x, y) pairs
        goal: Terminal cell
        start: Cell the agent is placed on at every reset
        max_steps: Truncation limit for the Gymnasium step API
        render_mode: None or "ansi"

    Example:
        >>> env = GridWorldEnvironment(5, 5, [(1, 1)], goal=(4, 4))
        >>> env.transition((0, 0), RIGHT)
        (1, 0)
        >>> env.reward((4, 4))
        100.0
    """

    metadata = {"render_modes": ["ansi"]}

    def __init__(
        self,
        width: int = DEFAULT_WIDTH,
        height: int = DEFAULT_HEIGHT,
        obstacles: Iterable[State] = DEFAULT_OBSTACLES,
        goal: State = DEFAULT_GOAL,
        start: State = DEFAULT_START,
        max_steps: int = DEFAULT_MAX_STEPS,
        render_mode: Optional[str] = None
    ) -> None:
        self.width = int(width)
        self.height = int(height)
        self.obstacles: FrozenSet[State] = frozenset(
            (int(x), int(y)) for x, y in obstacles
        )
        self.goal: State = (int(goal[0]), int(goal[1]))
        self.start: State = (int(start[0]), int(start[1]))
        self.max_steps = int(max_steps)
        self.render_mode = render_mode

        self.action_space = spaces.Discrete(NUM_ACTIONS)
        self.observation_space = spaces.MultiDiscrete([self.width, self.height])

        # Gymnasium episode state
        self.agent_pos: State = self.start
        self.steps = 0

    # ------------------------------------------------------------------
    # Pure dynamics
    # ------------------------------------------------------------------

    def in_bounds(self, state: State) -> bool:
        x, y = state
        return 0 <= x < self.width and 0 <= y < self.height

    def is_obstacle(self, state: State) -> bool:
        return (state[0], state[1]) in self.obstacles

    def is_terminal(self, state: State) -> bool:
        """True iff state is the goal cell."""
        return (state[0], state[1]) == self.goal

    def reward(self, state: State) -> float:
        """
        Reward for arriving at state.

        Returns:
            +100 at the goal, -50 on an obstacle, -1 otherwise
        """
        if self.is_terminal(state):
            return GOAL_REWARD
        if self.is_obstacle(state):
            return OBSTACLE_REWARD
        return STEP_REWARD

    def transition(self, state: State, action: int) -> State:
        """
        Deterministic one-cell move.

        Args:
            state: Current (x, y)
            action: Action index in ACTIONS

        Returns:
            Next (x, y); unchanged when the destination is an obstacle
        """
        dx, dy = ACTION_DELTAS[int(action)]
        x = min(max(state[0] + dx, 0), self.width - 1)
        y = min(max(state[1] + dy, 0), self.height - 1)

        if (x, y) in self.obstacles:
            return (state[0], state[1])
        return (x, y)

    def validate_state(self, state: State) -> State:
        """
        Check that state is a legal agent position.

        Raises:
            InvalidStateError: If state is out of bounds or an obstacle
        """
        if not self.in_bounds(state):
            raise InvalidStateError(
                f"State {state} is outside the {self.width}x{self.height} grid"
            )
        if self.is_obstacle(state):
            raise InvalidStateError(f"State {state} is an obstacle cell")
        return state

    def states(self) -> List[State]:
        """All non-obstacle cells, column-major (x outer, y inner)."""
        return [
            (x, y)
            for x in range(self.width)
            for y in range(self.height)
            if (x, y) not in self.obstacles
        ]

    def reachable_states(self) -> List[State]:
        """Cells reachable from the start cell, in breadth-first order."""
        seen = {self.start}
        frontier = [self.start]
        order = []
        while frontier:
            state = frontier.pop(0)
            order.append(state)
            if self.is_terminal(state):
                continue
            for action in ACTIONS:
                nxt = self.transition(state, action)
                if nxt not in seen:
                    seen.add(nxt)
                    frontier.append(nxt)
        return order

    def shortest_path_length(self) -> Optional[int]:
        """Number of moves on a shortest start-to-goal path, None if unreachable."""
        distances = {self.start: 0}
        frontier = [self.start]
        while frontier:
            state = frontier.pop(0)
            if self.is_terminal(state):
                return distances[state]
            for action in ACTIONS:
                nxt = self.transition(state, action)
                if nxt not in distances:
                    distances[nxt] = distances[state] + 1
                    frontier.append(nxt)
        return None

    # ------------------------------------------------------------------
    # Gymnasium API
    # ------------------------------------------------------------------

    def reset(
        self,
        seed: Optional[int] = None,
        options: Optional[dict] = None
    ) -> Tuple[np.ndarray, Dict[str, Any]]:
        super().reset(seed=seed)
        self.agent_pos = self.start
        self.steps = 0
        return self._get_obs(), self._get_info()

    def step(
        self,
        action: int
    ) -> Tuple[np.ndarray, float, bool, bool, Dict[str, Any]]:
        assert self.action_space.contains(action), f"Invalid action: {action}"

        self.steps += 1
        self.agent_pos = self.validate_state(
            self.transition(self.agent_pos, action)
        )

        reward = self.reward(self.agent_pos)
        terminated = self.is_terminal(self.agent_pos)
        truncated = not terminated and self.steps >= self.max_steps

        return self._get_obs(), reward, terminated, truncated, self._get_info()

    def _get_obs(self) -> np.ndarray:
        return np.array(self.agent_pos, dtype=np.int64)

    def _get_info(self) -> Dict[str, Any]:
        ax, ay = self.agent_pos
        gx, gy = self.goal
        return {
            "steps": self.steps,
            "agent_pos": self.agent_pos,
            "manhattan_to_goal": abs(ax - gx) + abs(ay - gy),
        }

    def render(self) -> Optional[str]:
        if self.render_mode == "ansi":
            return render_text(self, self.agent_pos)
        return None

    def get_config(self) -> Dict[str, Any]:
        """Return environment layout as a serialisable dictionary."""
        return {
            "width": self.width,
            "height": self.height,
            "obstacles": sorted(list(o) for o in self.obstacles),
            "goal": list(self.goal),
            "start": list(self.start),
            "max_steps": self.max_steps,
        }

    def __repr__(self) -> str:
        return (
            f"GridWorldEnvironment({self.width}x{self.height}, "
            f"obstacles={len(self.obstacles)}, goal={self.goal})"
        )


def render_text(env: GridWorldEnvironment, agent_pos: Optional[State] = None) -> str:
    """Text grid: A agent, G goal, # obstacle, . free."""
    rows = []
    for y in range(env.height):
        row = []
        for x in range(env.width):
            if agent_pos is not None and (x, y) == tuple(agent_pos):
                row.append("A")
            elif (x, y) == env.goal:
                row.append("G")
            elif (x, y) in env.obstacles:
                row.append("#")
            else:
                row.append(".")
        rows.append(" ".join(row))
    return "\n".join(rows)


def make_gridworld_env(**kwargs: Any) -> GridWorldEnvironment:
    """
    Create a grid world, defaulting to the canonical 5x5 layout.

    Example:
        >>> env = make_gridworld_env()
        >>> env.shortest_path_length()
        8
    """
    env = GridWorldEnvironment(**kwargs)
    logger.debug(f"Created {env}")
    return env
