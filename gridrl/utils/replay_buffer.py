"""
Experience replay buffer for the DQN-lite agent.

This module provides:
- Experience: immutable (s, a, r, s', done, sequence) transition record
- ReplayBuffer: bounded FIFO with uniform random sampling

Transitions here are tiny (two grid cells and a few scalars), so the buffer
keeps Experience records in a deque instead of pre-allocated arrays.
"""

from collections import deque
from typing import Any, Deque, Dict, Iterator, List, NamedTuple, Optional, Tuple

import numpy as np


class Experience(NamedTuple):
    """One recorded transition."""
    state: Tuple[int, int]
    action: int
    reward: float
    next_state: Tuple[int, int]
    done: bool
    sequence: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": list(self.state),
            "action": int(self.action),
            "reward": float(self.reward),
            "next_state": list(self.next_state),
            "done": bool(self.done),
            "sequence": int(self.sequence),
        }


class ReplayBuffer:
    """
    Bounded experience replay with strict FIFO eviction.

    Once `capacity` transitions are stored, each push drops the oldest one.
    Sampling is uniform: without replacement when enough transitions are
    stored, with replacement when the buffer holds fewer than requested.

    Args:
        capacity: Maximum number of transitions to store
        rng: Random generator used for sampling (a fresh one if None)

    Example:
        >>> buffer = ReplayBuffer(100, rng=np.random.default_rng(0))
        >>> buffer.push(Experience((0, 0), 3, -1.0, (1, 0), False, 0))
        >>> batch = buffer.sample(8)
    """

    def __init__(self, capacity: int, rng: Optional[np.random.Generator] = None) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self.rng = rng if rng is not None else np.random.default_rng()
        self.buffer: Deque[Experience] = deque(maxlen=capacity)

        # Total pushes over the buffer lifetime, evicted ones included
        self.total_pushed = 0

    def push(self, experience: Experience) -> None:
        """Append a transition, evicting the oldest one when full."""
        self.buffer.append(experience)
        self.total_pushed += 1

    def sample(self, batch_size: int) -> List[Experience]:
        """
        Draw a uniform random batch.

        Args:
            batch_size: Number of transitions to draw

        Returns:
            List of batch_size experiences (empty if the buffer is empty)
        """
        size = len(self.buffer)
        if size == 0 or batch_size <= 0:
            return []

        replace = size < batch_size
        indices = self.rng.choice(size, batch_size, replace=replace)
        return [self.buffer[int(i)] for i in indices]

    def is_ready(self, batch_size: int) -> bool:
        """True once the buffer holds at least batch_size transitions."""
        return len(self.buffer) >= batch_size

    def reset(self) -> None:
        """Clear the buffer."""
        self.buffer.clear()
        self.total_pushed = 0

    @property
    def evicted(self) -> int:
        """Number of transitions dropped by FIFO eviction."""
        return self.total_pushed - len(self.buffer)

    def __len__(self) -> int:
        return len(self.buffer)

    def __iter__(self) -> Iterator[Experience]:
        return iter(self.buffer)

    def __repr__(self) -> str:
        return f"ReplayBuffer(size={len(self)}, capacity={self.capacity})"
