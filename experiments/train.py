#!/usr/bin/env python3
"""
Train one algorithm on the grid world.

Hydra entry point. Examples:
    python experiments/train.py
    python experiments/train.py agent.algorithm=sarsa training.num_episodes=500
    python experiments/train.py --multirun agent.algorithm=q_learning,sarsa,dqn_lite,sac_lite seed=1,2,3

Each run gets results/<date>/<time>_<algorithm>_<W>x<H>_seed<N>/ holding
config.yaml, metadata.json, training.log, training_log.csv, snapshot.json,
summary.json and plots/.
"""

import hashlib
import json
import logging
import random
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import hydra
import numpy as np
from omegaconf import DictConfig, OmegaConf

from gridrl.training import EpisodeSummary, Trainer, evaluate, render_policy
from gridrl.utils.config_schema import ConfigurationError, print_config_summary, validate_config
from gridrl.utils.logging import SafeCSVLogger, setup_logger
from gridrl.utils.plotting import plot_learning_curve, plot_value_heatmap


CSV_FIELDS = [
    'episode', 'steps', 'total_reward', 'reached_goal', 'termination',
    'exploration', 'max_value_delta', 'mean_td_error', 'mean_entropy', 'time_seconds',
]


def set_seed(seed: int) -> Dict[str, Any]:
    """Seed the global generators; the trainer seeds its own Generator."""
    random.seed(seed)
    np.random.seed(seed)
    return {'master_seed': seed, 'python_random': seed, 'numpy': seed}


def create_run_directory(config: DictConfig) -> Tuple[Path, str]:
    """
    Make results/<date>/<time>_<run_name>/ and write config and metadata.

    Returns:
        (run_dir, run_id)
    """
    now = datetime.now()
    grid = f"{config.env.width}x{config.env.height}"
    run_name = f"{config.agent.algorithm}_{grid}_seed{config.seed}"
    run_id = f"{now:%Y-%m-%d_%H-%M-%S}_{run_name}"

    run_dir = Path("results") / f"{now:%Y-%m-%d}" / f"{now:%H-%M-%S}_{run_name}"
    (run_dir / "plots").mkdir(parents=True, exist_ok=True)

    config_yaml = OmegaConf.to_yaml(config)
    (run_dir / "config.yaml").write_text(config_yaml)

    metadata = {
        'run_id': run_id,
        'config_hash': hashlib.md5(config_yaml.encode()).hexdigest()[:8],
        'start_time': now.isoformat(),
        'algorithm': config.agent.algorithm,
        'grid': grid,
        'obstacles': OmegaConf.to_container(config.env.obstacles),
        'goal': list(config.env.goal),
        'seed': config.seed,
        'num_episodes': config.training.num_episodes,
    }
    (run_dir / "metadata.json").write_text(json.dumps(metadata, indent=2))
    return run_dir, run_id


def train_loop(
    trainer: Trainer,
    config: DictConfig,
    logger: logging.Logger,
    csv_logger: Optional[SafeCSVLogger] = None
) -> Tuple[List[EpisodeSummary], List[Dict[str, float]]]:
    """
    Run config.training.num_episodes episodes with periodic logging and
    greedy evaluation.

    Returns:
        (episode summaries, evaluation records)
    """
    summaries: List[EpisodeSummary] = []
    evaluations: List[Dict[str, float]] = []
    exploration_label = trainer.agent.exploration_name[:4].capitalize()
    start = time.time()

    for episode in range(1, config.training.num_episodes + 1):
        summary = trainer.run_episode()
        summaries.append(summary)

        if csv_logger is not None:
            csv_logger.log({**summary.to_dict(), 'time_seconds': time.time() - start})

        if episode % config.logging.log_freq == 0:
            recent = np.mean([s.total_reward for s in summaries[-10:]])
            logger.info(
                f"Episode {episode:5d} | {summary.termination:<18} | "
                f"Reward: {summary.total_reward:7.2f} | Avg10: {recent:7.2f} | "
                f"Steps: {summary.steps:3d} | {exploration_label}: {summary.exploration:.3f} | "
                f"dQ: {summary.max_value_delta:.4f}"
            )

        if episode % config.training.eval_freq == 0:
            metrics = evaluate(trainer, config.training.eval_episodes)
            metrics['episode'] = episode
            evaluations.append(metrics)
            logger.info(
                f"  [EVAL] reward {metrics['eval/reward_mean']:.2f} | "
                f"length {metrics['eval/length_mean']:.1f} | "
                f"success {metrics['eval/success_rate']:.0%}"
            )

    return summaries, evaluations


def save_artifacts(trainer: Trainer, config: DictConfig, run_dir: Path) -> Dict[str, Any]:
    """Plots and snapshot.json; returns the snapshot."""
    rewards = [s.total_reward for s in trainer.history]
    plot_learning_curve(
        rewards,
        window=10,
        title=f"{config.agent.algorithm} on {trainer.env.width}x{trainer.env.height} grid",
        save_path=str(run_dir / "plots" / "learning_curve.png"),
    )

    tables = trainer.agent.values.tables
    plot_value_heatmap(
        tables["q1" if "q1" in tables else "q"].values,
        obstacles=trainer.env.obstacles,
        goal=trainer.env.goal,
        save_path=str(run_dir / "plots" / "value_heatmap.png"),
    )

    snapshot = trainer.snapshot()
    (run_dir / "snapshot.json").write_text(json.dumps(snapshot))
    return snapshot


@hydra.main(version_base=None, config_path="../configs", config_name="default")
def main(config: DictConfig) -> float:
    """
    Returns:
        Mean reward of the last 10 episodes (objective for sweeps), or -inf
        when the configuration is rejected
    """
    try:
        validate_config(config)
    except ConfigurationError as e:
        print(f"ERROR: {e}")
        return float('-inf')

    run_dir, run_id = create_run_directory(config)
    logger = setup_logger(
        name="gridrl",
        level=config.logging.get('level', 'INFO'),
        log_file=run_dir / "training.log",
    )
    logger.info(f"Run {run_id} -> {run_dir}")
    print_config_summary(config)
    logger.debug("Full configuration:\n" + OmegaConf.to_yaml(config))

    seed_info = set_seed(config.seed)
    trainer = Trainer.from_config(config)
    logger.info(f"{trainer.agent} on {trainer.env}")

    csv_logger = None
    if config.logging.csv_log:
        csv_logger = SafeCSVLogger(
            run_dir / "training_log.csv",
            CSV_FIELDS,
            flush_every=config.logging.get('flush_every', 10),
        )

    started = time.time()
    try:
        summaries, evaluations = train_loop(trainer, config, logger, csv_logger)
    finally:
        if csv_logger is not None:
            csv_logger.close()
    elapsed = time.time() - started

    final_avg_reward = float(np.mean([s.total_reward for s in summaries[-10:]]))
    logger.info(f"Finished {len(summaries)} episodes in {elapsed:.2f} s")
    logger.info(f"Final avg reward (last 10): {final_avg_reward:.2f}")
    logger.info("Greedy policy:\n" + render_policy(trainer))

    snapshot = save_artifacts(trainer, config, run_dir)
    summary = {
        'run_id': run_id,
        'run_dir': str(run_dir),
        'total_time_seconds': elapsed,
        'num_episodes': len(summaries),
        'final_avg_reward_10': final_avg_reward,
        'goal_rate': float(np.mean([s.reached_goal for s in summaries])),
        'best_eval_reward': max(
            (e['eval/reward_mean'] for e in evaluations), default=None
        ),
        'final_exploration': snapshot['exploration'],
        'evaluations': evaluations,
        'seed_info': seed_info,
    }
    (run_dir / "summary.json").write_text(json.dumps(summary, indent=2))

    return final_avg_reward


if __name__ == "__main__":
    main()
