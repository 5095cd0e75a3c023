"""
Action-selection strategies.

This module provides:
- greedy_action: argmax with canonical first-maximum tie-breaking
- EpsilonGreedyPolicy: exploration rate with geometric per-episode decay
- StochasticPolicyStore: per-state softmax policy derived from twin critics
- TemperatureController: entropy temperature with optional auto-tuning
"""

from typing import Dict, Tuple

import numpy as np

from ..envs.gridworld import ACTION_NAMES, NUM_ACTIONS


State = Tuple[int, int]

# Floor applied to probabilities before taking logarithms
LOG_FLOOR = 1e-8


def greedy_action(values: np.ndarray) -> int:
    """
    Index of the highest value.

    Ties go to the first maximal entry in canonical order
    (up, down, left, right).
    """
    return int(np.argmax(values))


def entropy(probabilities: np.ndarray) -> float:
    """Shannon entropy -sum(p log p) with the log floored at LOG_FLOOR."""
    p = np.asarray(probabilities, dtype=np.float64)
    return float(-np.sum(p * np.log(np.maximum(p, LOG_FLOOR))))


class EpsilonGreedyPolicy:
    """
    Epsilon-greedy selection over a row of action values.

    With probability epsilon a uniformly random action is taken, otherwise
    the greedy one. Epsilon decays geometrically once per episode and never
    drops below epsilon_end.

    Args:
        epsilon_start: Initial exploration rate
        epsilon_end: Floor for the exploration rate
        epsilon_decay: Multiplicative decay per episode
    """

    def __init__(
        self,
        epsilon_start: float,
        epsilon_end: float,
        epsilon_decay: float
    ) -> None:
        self.epsilon_start = epsilon_start
        self.epsilon_end = epsilon_end
        self.epsilon_decay = epsilon_decay
        self.epsilon = epsilon_start

        # Whether the most recent selection was a random exploration move
        self.last_explored = False

    def select(
        self,
        values: np.ndarray,
        rng: np.random.Generator,
        training: bool = True
    ) -> int:
        """
        Choose an action.

        Args:
            values: Action values at the current state
            rng: Random generator
            training: If False, act greedily

        Returns:
            Selected action index
        """
        if training and rng.random() < self.epsilon:
            self.last_explored = True
            return int(rng.integers(NUM_ACTIONS))

        self.last_explored = False
        return greedy_action(values)

    def decay(self) -> float:
        """Apply one episode of decay and return the new epsilon."""
        self.epsilon = max(self.epsilon_end, self.epsilon * self.epsilon_decay)
        return self.epsilon

    def reset(self) -> None:
        self.epsilon = self.epsilon_start
        self.last_explored = False


class StochasticPolicyStore:
    """
    Per-state action distributions for the maximum-entropy agent.

    The policy at s is a Boltzmann distribution over the critic values:

        pi(a|s) ∝ exp((Q(s,a) - V_soft(s)) / temperature)
        V_soft(s) = sum_a pi(a|s) * (Q(s,a) - temperature * log pi(a|s))

    where Q is the consumed (min of twin) value. Entropy is cached per state
    whenever the distribution changes. Distributions start uniform.

    Args:
        width: Grid columns
        height: Grid rows
    """

    def __init__(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self.probabilities = np.full(
            (width, height, NUM_ACTIONS), 1.0 / NUM_ACTIONS, dtype=np.float64
        )
        self.entropies = np.full(
            (width, height), entropy(self.probabilities[0, 0]), dtype=np.float64
        )

    def __getitem__(self, state: State) -> np.ndarray:
        return self.probabilities[state[0], state[1]]

    def entropy_at(self, state: State) -> float:
        return float(self.entropies[state[0], state[1]])

    def soft_value(self, state: State, q_values: np.ndarray, temperature: float) -> float:
        """Entropy-regularised value of state under the current policy."""
        p = self[state]
        log_p = np.log(np.maximum(p, LOG_FLOOR))
        return float(np.sum(p * (q_values - temperature * log_p)))

    def update(
        self,
        state: State,
        q_values: np.ndarray,
        temperature: float
    ) -> Tuple[np.ndarray, float]:
        """
        Recompute the distribution at state from critic values.

        The softmax is shifted by its maximum logit before exponentiating;
        a zero or non-finite normaliser falls back to the uniform
        distribution.

        Returns:
            Tuple of (new probabilities, new entropy)
        """
        v_soft = self.soft_value(state, q_values, temperature)
        logits = (np.asarray(q_values, dtype=np.float64) - v_soft) / temperature
        weights = np.exp(logits - np.max(logits))
        total = weights.sum()

        if not np.isfinite(total) or total <= 0:
            probs = np.full(NUM_ACTIONS, 1.0 / NUM_ACTIONS)
        else:
            probs = weights / total

        h = entropy(probs)
        self.probabilities[state[0], state[1]] = probs
        self.entropies[state[0], state[1]] = h
        return probs.copy(), h

    def sample(self, state: State, rng: np.random.Generator) -> int:
        """Draw an action from the cumulative distribution at state."""
        cumulative = np.cumsum(self[state])
        index = int(np.searchsorted(cumulative, rng.random(), side="left"))
        return min(index, NUM_ACTIONS - 1)

    def most_probable(self, state: State) -> int:
        return greedy_action(self[state])

    def to_dict(self) -> Dict[str, Dict[str, object]]:
        """Serialisable {"x,y": {"probabilities": {...}, "entropy": h}}."""
        return {
            f"{x},{y}": {
                "probabilities": {
                    name: float(self.probabilities[x, y, a])
                    for a, name in enumerate(ACTION_NAMES)
                },
                "entropy": float(self.entropies[x, y]),
            }
            for x in range(self.width)
            for y in range(self.height)
        }


class TemperatureController:
    """
    Entropy temperature with optional automatic tuning.

    Tuning nudges the temperature so that policy entropy drifts toward the
    target:
        temperature <- max(minimum, temperature + lr * (target - entropy))

    Args:
        initial: Starting temperature
        minimum: Floor for the temperature
        lr: Tuning step size
        target_entropy: Desired policy entropy
        auto: Whether tune() changes the temperature at all
    """

    def __init__(
        self,
        initial: float,
        minimum: float,
        lr: float,
        target_entropy: float,
        auto: bool = True
    ) -> None:
        self.initial = initial
        self.minimum = minimum
        self.lr = lr
        self.target_entropy = target_entropy
        self.auto = auto
        self.temperature = initial

    def tune(self, observed_entropy: float) -> float:
        """
        Apply one tuning step.

        Returns:
            Temperature loss |target - entropy| (0.0 when tuning is off)
        """
        if not self.auto:
            return 0.0
        error = self.target_entropy - observed_entropy
        self.temperature = max(self.minimum, self.temperature + self.lr * error)
        return abs(error)

    def reset(self) -> None:
        self.temperature = self.initial

