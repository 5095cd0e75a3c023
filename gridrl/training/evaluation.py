"""
Greedy evaluation and policy inspection.

This module provides:
- evaluate: roll out the learned policy through the Gymnasium API
- greedy_policy: per-cell greedy action arrows
- render_policy: the arrow grid as text
- greedy_path: cells visited when following the greedy policy from the start
"""

from typing import Dict, List, Optional

import numpy as np

from ..envs.gridworld import ACTION_ARROWS, GridWorldEnvironment, State
from .trainer import Trainer


def evaluate(
    trainer: Trainer,
    num_episodes: int = 5,
    max_steps: Optional[int] = None
) -> Dict[str, float]:
    """
    Evaluate the agent without exploration or learning.

    Runs on a separate environment built from the trainer's layout, so the
    training session is left untouched.

    Args:
        trainer: Configured trainer
        num_episodes: Number of evaluation episodes
        max_steps: Step cap per episode (defaults to the trainer's)

    Returns:
        Dictionary of evaluation metrics
    """
    layout = trainer.env.get_config()
    if max_steps is not None:
        layout["max_steps"] = max_steps
    env = GridWorldEnvironment(**layout)
    agent = trainer.agent

    rewards = []
    lengths = []
    successes = []

    for _ in range(num_episodes):
        obs, _ = env.reset()
        episode_reward = 0.0
        episode_length = 0

        done = False
        terminated = False
        while not done:
            action = agent.greedy_action((int(obs[0]), int(obs[1])))
            obs, reward, terminated, truncated, _ = env.step(action)
            done = terminated or truncated
            episode_reward += reward
            episode_length += 1

        rewards.append(episode_reward)
        lengths.append(episode_length)
        successes.append(float(terminated))

    return {
        'eval/reward_mean': float(np.mean(rewards)),
        'eval/reward_std': float(np.std(rewards)),
        'eval/reward_min': float(np.min(rewards)),
        'eval/reward_max': float(np.max(rewards)),
        'eval/length_mean': float(np.mean(lengths)),
        'eval/success_rate': float(np.mean(successes)),
    }


def greedy_policy(trainer: Trainer) -> Dict[State, str]:
    """Greedy action arrow for every free non-goal cell."""
    env = trainer.env
    return {
        state: ACTION_ARROWS[trainer.agent.greedy_action(state)]
        for state in env.states()
        if not env.is_terminal(state)
    }


def render_policy(trainer: Trainer) -> str:
    """
    Text grid of the greedy policy.

    Example:
        > > > > v
        ^ # # # v
        ...
    """
    env = trainer.env
    arrows = greedy_policy(trainer)
    rows = []
    for y in range(env.height):
        row = []
        for x in range(env.width):
            if (x, y) == env.goal:
                row.append("G")
            elif env.is_obstacle((x, y)):
                row.append("#")
            else:
                row.append(arrows[(x, y)])
        rows.append(" ".join(row))
    return "\n".join(rows)


def greedy_path(trainer: Trainer, max_steps: Optional[int] = None) -> List[State]:
    """
    Follow the greedy policy from the start cell.

    Stops at the goal, after max_steps moves, or when a cell repeats.

    Returns:
        Visited cells, start included
    """
    env = trainer.env
    limit = env.max_steps if max_steps is None else max_steps

    state = env.start
    path = [state]
    seen = {state}
    for _ in range(limit):
        if env.is_terminal(state):
            break
        state = env.transition(state, trainer.agent.greedy_action(state))
        path.append(state)
        if state in seen:
            break
        seen.add(state)
    return path
