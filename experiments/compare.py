#!/usr/bin/env python3
"""
Algorithm comparison runner for grid-world RL experiments.

Trains every selected algorithm over several seeds in-process, then
aggregates the runs with pandas and writes a summary table and plot.

Usage:
    python experiments/compare.py
    python experiments/compare.py --algorithms q_learning sarsa --seeds 1 2 3
    python experiments/compare.py --episodes 500 --output results/compare
"""

import sys
import json
import argparse
from pathlib import Path
from typing import Dict, List

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import numpy as np
import pandas as pd

from gridrl.envs.gridworld import DEFAULT_GOAL, DEFAULT_HEIGHT, DEFAULT_OBSTACLES, DEFAULT_WIDTH
from gridrl.training import Trainer, evaluate
from gridrl.utils.analysis import aggregate_runs, summaries_to_frame
from gridrl.utils.factory import get_agent_info, list_agents
from gridrl.utils.logging import setup_logger
from gridrl.utils.plotting import plot_comparison


def run_experiment(algorithm: str, seed: int, episodes: int) -> pd.DataFrame:
    """Train one algorithm with one seed and return its episode frame."""
    trainer = Trainer().configure(
        DEFAULT_WIDTH,
        DEFAULT_HEIGHT,
        DEFAULT_OBSTACLES,
        DEFAULT_GOAL,
        algorithm=algorithm,
        seed=seed,
    )
    summaries = trainer.train(episodes)
    frame = summaries_to_frame(summaries, algorithm=algorithm, seed=seed)

    eval_metrics = evaluate(trainer, num_episodes=1)
    frame['eval_success'] = eval_metrics['eval/success_rate']
    return frame


def mean_curves(frame: pd.DataFrame) -> Dict[str, List[float]]:
    """Per-algorithm reward curve averaged over seeds."""
    curves = {}
    for algorithm, group in frame.groupby('algorithm'):
        curves[algorithm] = group.groupby('episode')['total_reward'].mean().tolist()
    return curves


def main():
    parser = argparse.ArgumentParser(
        description='Compare tabular RL algorithms on the grid world',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Algorithms:
    q_learning   - Off-policy tabular Q-learning
    sarsa        - On-policy SARSA
    dqn_lite     - Replay + target table
    sac_lite     - Twin critics with entropy temperature

Example:
    python experiments/compare.py --algorithms q_learning sac_lite --episodes 300
        """
    )

    parser.add_argument(
        '--algorithms',
        type=str,
        nargs='+',
        default=list_agents(),
        choices=list_agents(),
        help='Algorithms to compare'
    )

    parser.add_argument(
        '--seeds',
        type=int,
        nargs='+',
        default=[1, 2, 3],
        help='Random seeds for multiple runs'
    )

    parser.add_argument(
        '--episodes',
        type=int,
        default=200,
        help='Number of training episodes per run'
    )

    parser.add_argument(
        '--output',
        type=str,
        default='results/compare',
        help='Output directory for summary and plot'
    )

    args = parser.parse_args()
    logger = setup_logger("gridrl.compare")

    print("\n" + "=" * 60)
    print("Grid-World Algorithm Comparison")
    print("=" * 60)
    print(f"Algorithms: {args.algorithms}")
    print(f"Seeds: {args.seeds}")
    print(f"Episodes: {args.episodes}")
    print("=" * 60)

    frames = []
    for algorithm in args.algorithms:
        logger.info(f"{get_agent_info(algorithm)['name']}")
        for seed in args.seeds:
            frame = run_experiment(algorithm, seed, args.episodes)
            frames.append(frame)
            logger.info(
                f"  seed {seed}: final reward {frame['total_reward'].iloc[-10:].mean():7.2f}, "
                f"goal rate {frame['reached_goal'].mean():.0%}"
            )

    combined = pd.concat(frames, ignore_index=True)
    summary = aggregate_runs(combined)

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    combined.to_csv(output_dir / "episodes.csv", index=False)
    summary.to_csv(output_dir / "comparison_summary.csv", index=False)
    with open(output_dir / "comparison_summary.json", 'w') as f:
        json.dump(summary.replace({np.nan: None}).to_dict(orient='records'), f, indent=2)

    plot_comparison(
        mean_curves(combined),
        window=10,
        title=f"Mean reward over {len(args.seeds)} seeds",
        save_path=str(output_dir / "comparison.png")
    )

    print("\nSummary Statistics:")
    print(summary.round(2).to_string(index=False))

    print("\n" + "=" * 60)
    print("Comparison complete!")
    print("=" * 60)


if __name__ == '__main__':
    main()
