"""
Utility modules for configuration, training support and analysis.

Includes:
- Configuration schemas and validation
- Replay buffer
- Logging (Python logging, CSV, running metrics)
- Plotting (learning curves, comparisons, value heatmaps)
- Analysis (episode frames and cross-seed aggregation)

Factory functions live in gridrl.utils.factory.
"""

from .config_schema import (
    Algorithm,
    ConfigurationError,
    GridConfig,
    Hyperparameters,
    default_hyperparameters,
    validate_config,
)
from .replay_buffer import Experience, ReplayBuffer
from .logging import SafeCSVLogger, MetricsTracker, setup_logger, get_logger
from .plotting import plot_learning_curve, plot_comparison, plot_value_heatmap
from .analysis import summaries_to_frame, aggregate_runs, convergence_episode

__all__ = [
    # Configuration
    "Algorithm",
    "ConfigurationError",
    "GridConfig",
    "Hyperparameters",
    "default_hyperparameters",
    "validate_config",
    # Replay buffer
    "Experience",
    "ReplayBuffer",
    # Logging
    "SafeCSVLogger",
    "MetricsTracker",
    "setup_logger",
    "get_logger",
    # Plotting
    "plot_learning_curve",
    "plot_comparison",
    "plot_value_heatmap",
    # Analysis
    "summaries_to_frame",
    "aggregate_runs",
    "convergence_episode",
]
