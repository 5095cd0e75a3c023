"""
Results analysis for training runs.

This module provides:
- RunResult: one algorithm/seed run with derived statistics
- summaries_to_frame: episode summaries as a pandas DataFrame
- convergence_episode: first episode whose value changes settle
- aggregate_runs: per-algorithm statistics across seeds

Usage:
    from gridrl.utils.analysis import summaries_to_frame, aggregate_runs

    frame = summaries_to_frame(trainer.history, algorithm="q_learning", seed=0)
    table = aggregate_runs(frame)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class RunResult:
    """Single training run."""
    algorithm: str
    seed: int
    rewards: List[float]
    steps: List[int]
    reached_goal: List[bool]
    value_deltas: List[float] = field(default_factory=list)

    @property
    def final_reward(self) -> float:
        """Average reward of the last 10 episodes."""
        return float(np.mean(self.rewards[-10:])) if self.rewards else 0.0

    @property
    def success_rate(self) -> float:
        return float(np.mean(self.reached_goal)) if self.reached_goal else 0.0

    @property
    def stability(self) -> float:
        """Reward standard deviation over the last 10 episodes (lower = more stable)."""
        return float(np.std(self.rewards[-10:])) if self.rewards else 0.0

    @property
    def convergence(self) -> Optional[int]:
        return convergence_episode(self.value_deltas)


def convergence_episode(value_deltas: Iterable[float], tolerance: float = 0.01) -> Optional[int]:
    """
    First episode (1-based) whose largest single-step value change is below
    tolerance, or None if no episode qualifies.
    """
    for i, delta in enumerate(value_deltas, start=1):
        if delta < tolerance:
            return i
    return None


def summaries_to_frame(
    summaries: Iterable[Any],
    algorithm: Optional[str] = None,
    seed: Optional[int] = None
) -> pd.DataFrame:
    """
    Convert EpisodeSummary objects (or their dicts) to a DataFrame.

    algorithm and seed, when given, are added as constant columns so frames
    from several runs can be concatenated and grouped.
    """
    rows = [s.to_dict() if hasattr(s, "to_dict") else dict(s) for s in summaries]
    frame = pd.DataFrame(rows)
    if algorithm is not None:
        frame["algorithm"] = algorithm
    if seed is not None:
        frame["seed"] = seed
    return frame


def run_from_frame(frame: pd.DataFrame) -> RunResult:
    """Build a RunResult from the frame of a single run."""
    return RunResult(
        algorithm=str(frame["algorithm"].iloc[0]) if "algorithm" in frame else "unknown",
        seed=int(frame["seed"].iloc[0]) if "seed" in frame else 0,
        rewards=frame["total_reward"].astype(float).tolist(),
        steps=frame["steps"].astype(int).tolist(),
        reached_goal=frame["reached_goal"].astype(bool).tolist(),
        value_deltas=frame["max_value_delta"].astype(float).tolist(),
    )


def aggregate_runs(frame: pd.DataFrame, tolerance: float = 0.01) -> pd.DataFrame:
    """
    Aggregate runs per algorithm across seeds.

    Args:
        frame: Concatenated summaries_to_frame() output with algorithm and
            seed columns
        tolerance: Value-change threshold for convergence

    Returns:
        One row per algorithm with num_seeds, final reward mean/std,
        success rate, convergence episode mean (NaN if no seed converged),
        converged fraction and stability
    """
    rows: List[Dict[str, Any]] = []
    for algorithm, group in frame.groupby("algorithm", sort=True):
        runs = [run_from_frame(run) for _, run in group.groupby("seed", sort=True)]
        final_rewards = [r.final_reward for r in runs]
        convergences = [convergence_episode(r.value_deltas, tolerance) for r in runs]
        converged = [c for c in convergences if c is not None]

        rows.append({
            "algorithm": algorithm,
            "num_seeds": len(runs),
            "reward_mean": float(np.mean(final_rewards)),
            "reward_std": float(np.std(final_rewards)),
            "success_rate": float(np.mean([r.success_rate for r in runs])),
            "convergence_mean": float(np.mean(converged)) if converged else float("nan"),
            "converged_fraction": len(converged) / len(runs),
            "stability_mean": float(np.mean([r.stability for r in runs])),
        })

    return pd.DataFrame(rows)
