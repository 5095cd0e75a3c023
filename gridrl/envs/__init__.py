"""
Grid-world environment.

Provides:
- GridWorldEnvironment: deterministic grid with obstacles and a goal
- make_gridworld_env: builder with the canonical 5x5 layout
- Action constants in canonical tie-breaking order
"""

from .gridworld import (
    ACTION_ARROWS,
    ACTION_NAMES,
    ACTIONS,
    DEFAULT_GOAL,
    DEFAULT_OBSTACLES,
    DOWN,
    LEFT,
    NUM_ACTIONS,
    RIGHT,
    UP,
    GridWorldEnvironment,
    InvalidStateError,
    make_gridworld_env,
    render_text,
)

__all__ = [
    "ACTION_ARROWS",
    "ACTION_NAMES",
    "ACTIONS",
    "DEFAULT_GOAL",
    "DEFAULT_OBSTACLES",
    "DOWN",
    "LEFT",
    "NUM_ACTIONS",
    "RIGHT",
    "UP",
    "GridWorldEnvironment",
    "InvalidStateError",
    "make_gridworld_env",
    "render_text",
]
