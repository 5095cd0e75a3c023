"""
Figures for training runs.

This module provides:
- plot_learning_curve: reward per episode for one run
- plot_comparison: smoothed reward curves of several algorithms
- plot_value_heatmap: max action value per grid cell

All functions draw on the Agg backend, so they work without a display.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from pathlib import Path

import numpy as np
import matplotlib

matplotlib.use('Agg')

import matplotlib.pyplot as plt


def _moving_average(values: Sequence[float], window: int) -> np.ndarray:
    return np.convolve(values, np.ones(window) / window, mode='valid')


def _draw_series(ax, rewards: Sequence[float], window: int, color, label: str) -> None:
    """Smoothed curve when there are enough points, the raw series otherwise."""
    episodes = np.arange(1, len(rewards) + 1)
    if len(rewards) >= window > 1:
        ax.plot(episodes[window - 1:], _moving_average(rewards, window),
                color=color, linewidth=2, label=label)
    else:
        ax.plot(episodes, rewards, color=color, linewidth=2, label=label)


def _save(fig, save_path: Optional[str], show: bool, label: str) -> None:
    fig.tight_layout()

    if save_path:
        Path(save_path).parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"{label} saved to: {save_path}")

    if show:
        plt.show()
    else:
        plt.close(fig)


def _finish(ax, title: str, xlabel: str, ylabel: str,
            save_path: Optional[str], show: bool, label: str) -> None:
    ax.set_xlabel(xlabel)
    ax.set_ylabel(ylabel)
    ax.set_title(title)
    ax.legend(loc='lower right')
    ax.grid(True, alpha=0.3)
    _save(ax.figure, save_path, show, label)


def plot_learning_curve(
    rewards: List[float],
    window: int = 10,
    title: str = "Learning Curve",
    xlabel: str = "Episode",
    ylabel: str = "Total Reward",
    save_path: Optional[str] = None,
    show: bool = False
) -> None:
    """
    Episode rewards, faint, under their moving average.

    Example:
        >>> rewards = [s.total_reward for s in trainer.train(200)]
        >>> plot_learning_curve(rewards, save_path="curve.png")
    """
    fig, ax = plt.subplots(figsize=(9, 5))
    ax.plot(np.arange(1, len(rewards) + 1), rewards, color='tab:blue', alpha=0.3, label='episode')
    if len(rewards) >= window:
        _draw_series(ax, rewards, window, 'tab:blue', f'{window}-episode mean')
    ax.axhline(0.0, color='grey', linewidth=0.8)
    _finish(ax, title, xlabel, ylabel, save_path, show, "Learning curve")


def plot_comparison(
    results: Dict[str, List[float]],
    window: int = 10,
    title: str = "Algorithm Comparison",
    xlabel: str = "Episode",
    ylabel: str = "Total Reward (Moving Average)",
    save_path: Optional[str] = None,
    show: bool = False
) -> None:
    """
    One smoothed reward curve per algorithm on shared axes.

    Args:
        results: algorithm name -> reward per episode (seed-averaged or not)
        window: Moving average window; shorter series are drawn raw
    """
    fig, ax = plt.subplots(figsize=(10, 6))
    colors = plt.get_cmap('tab10').colors
    for i, (name, rewards) in enumerate(results.items()):
        _draw_series(ax, rewards, window, colors[i % len(colors)], name)
    _finish(ax, title, xlabel, ylabel, save_path, show, "Comparison plot")


def plot_value_heatmap(
    values: np.ndarray,
    obstacles: Iterable[Tuple[int, int]] = (),
    goal: Optional[Tuple[int, int]] = None,
    title: str = "State Values (max over actions)",
    save_path: Optional[str] = None,
    show: bool = False
) -> np.ndarray:
    """
    Heatmap of max_a Q(s, a) over the grid.

    Obstacle cells are masked out and the goal is marked with "G".

    Args:
        values: Array of shape (width, height, num_actions), e.g.
            trainer.agent.values["q"].values
        obstacles: Cells to mask
        goal: Cell to label
        title: Plot title
        save_path: Optional save path
        show: Whether to display the plot

    Returns:
        The plotted (height, width) array, NaN on obstacles
    """
    state_values = np.asarray(values, dtype=np.float64).max(axis=2).T
    for x, y in obstacles:
        state_values[y, x] = np.nan

    fig, ax = plt.subplots(figsize=(8, 7))

    im = ax.imshow(np.ma.masked_invalid(state_values), cmap='viridis')

    height, width = state_values.shape
    ax.set_xticks(np.arange(width))
    ax.set_yticks(np.arange(height))
    ax.set_xlabel("x")
    ax.set_ylabel("y")
    ax.set_title(title)

    cbar = ax.figure.colorbar(im, ax=ax)
    cbar.ax.set_ylabel("max Q", rotation=-90, va='bottom')

    finite = state_values[np.isfinite(state_values)]
    midpoint = finite.mean() if finite.size else 0.0
    for y in range(height):
        for x in range(width):
            value = state_values[y, x]
            if goal is not None and (x, y) == tuple(goal):
                label = "G"
            elif np.isnan(value):
                label = "#"
            else:
                label = f'{value:.1f}'
            text_color = 'white' if np.isnan(value) or value < midpoint else 'black'
            ax.text(x, y, label, ha='center', va='center', color=text_color, fontsize=10)

    _save(fig, save_path, show, "Value heatmap")
    return state_values
