"""
Training engine and evaluation helpers.
"""

from .trainer import EpisodeSummary, StepResult, Trainer, TrainerState
from .evaluation import evaluate, greedy_path, greedy_policy, render_policy

__all__ = [
    "EpisodeSummary",
    "StepResult",
    "Trainer",
    "TrainerState",
    "evaluate",
    "greedy_path",
    "greedy_policy",
    "render_policy",
]
