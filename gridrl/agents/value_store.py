"""
Tabular action-value storage.

This module provides:
- ValueTable: per-state-action scalar estimates over a whole grid
- ValueStore: single, twin or target-augmented arrangement of tables

The "networks" of the DQN-lite and SAC-lite agents are tables of this kind;
there is no function approximation.
"""

from enum import Enum
from typing import Dict, Optional, Tuple

import numpy as np

from ..envs.gridworld import ACTION_NAMES, NUM_ACTIONS


State = Tuple[int, int]


class StoreMode(str, Enum):
    """Table arrangement held by a ValueStore."""
    SINGLE = "single"
    TWIN = "twin"
    TARGET = "target"


class ValueTable:
    """
    Q(s, a) for every cell of a width x height grid.

    Entries exist for every cell from construction, so lookups never miss.

    Args:
        width: Grid columns
        height: Grid rows
        values: Optional initial array of shape (width, height, NUM_ACTIONS)
    """

    def __init__(
        self,
        width: int,
        height: int,
        values: Optional[np.ndarray] = None
    ) -> None:
        self.width = width
        self.height = height
        if values is None:
            values = np.zeros((width, height, NUM_ACTIONS), dtype=np.float64)
        self.values = np.asarray(values, dtype=np.float64)
        expected = (width, height, NUM_ACTIONS)
        if self.values.shape != expected:
            raise ValueError(f"values must have shape {expected}, got {self.values.shape}")

    @classmethod
    def random(
        cls,
        width: int,
        height: int,
        scale: float,
        rng: np.random.Generator
    ) -> "ValueTable":
        """Uniform initialisation in [-scale/2, scale/2]."""
        values = (rng.random((width, height, NUM_ACTIONS)) - 0.5) * scale
        return cls(width, height, values)

    def __getitem__(self, state: State) -> np.ndarray:
        """Action values at state (a view, length NUM_ACTIONS)."""
        return self.values[state[0], state[1]]

    def get(self, state: State, action: int) -> float:
        return float(self.values[state[0], state[1], action])

    def set(self, state: State, action: int, value: float) -> None:
        self.values[state[0], state[1], action] = value

    def max(self, state: State) -> float:
        return float(self.values[state[0], state[1]].max())

    def copy(self) -> "ValueTable":
        return ValueTable(self.width, self.height, self.values.copy())

    def copy_from(self, other: "ValueTable") -> None:
        np.copyto(self.values, other.values)

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        """Serialisable {"x,y": {action_name: value}} mapping."""
        return {
            f"{x},{y}": {
                name: float(self.values[x, y, a])
                for a, name in enumerate(ACTION_NAMES)
            }
            for x in range(self.width)
            for y in range(self.height)
        }


class ValueStore:
    """
    Value tables in one of three arrangements.

    - SINGLE: one table "q" (Q-learning, SARSA)
    - TWIN: tables "q1" and "q2"; the consumed value is min(q1, q2) (SAC-lite)
    - TARGET: live table "q" plus a frozen "target" copy (DQN-lite)

    Every table is updated with the same TD rule:
        Q(s, a) <- Q(s, a) + lr * (target - Q(s, a))

    Args:
        width: Grid columns
        height: Grid rows
        mode: Table arrangement
        init_scale: Width of the uniform random initialisation (0 = zeros)
        rng: Generator for random initialisation

    Example:
        >>> store = ValueStore(5, 5, StoreMode.TARGET, init_scale=10.0,
        ...                    rng=np.random.default_rng(0))
        >>> store.td_update("q", (0, 0), 3, target=-1.0, lr=0.1)
        >>> store.sync_target()
    """

    def __init__(
        self,
        width: int,
        height: int,
        mode: StoreMode = StoreMode.SINGLE,
        init_scale: float = 0.0,
        rng: Optional[np.random.Generator] = None
    ) -> None:
        self.width = width
        self.height = height
        self.mode = StoreMode(mode)
        self.init_scale = init_scale

        if init_scale > 0 and rng is None:
            rng = np.random.default_rng()

        def make_table() -> ValueTable:
            if init_scale > 0:
                return ValueTable.random(width, height, init_scale, rng)
            return ValueTable(width, height)

        self.tables: Dict[str, ValueTable] = {}
        if self.mode is StoreMode.TWIN:
            self.tables["q1"] = make_table()
            self.tables["q2"] = make_table()
        else:
            self.tables["q"] = make_table()
            if self.mode is StoreMode.TARGET:
                # Target starts as an exact copy of the live table
                self.tables["target"] = self.tables["q"].copy()

        self.sync_count = 0

    def __getitem__(self, name: str) -> ValueTable:
        return self.tables[name]

    @property
    def live_tables(self) -> Tuple[str, ...]:
        """Names of the tables that receive TD updates."""
        if self.mode is StoreMode.TWIN:
            return ("q1", "q2")
        return ("q",)

    def action_values(self, state: State) -> np.ndarray:
        """
        Values consumed at decision time.

        Returns:
            min(q1, q2) for TWIN, the live table otherwise (a copy)
        """
        if self.mode is StoreMode.TWIN:
            return np.minimum(self.tables["q1"][state], self.tables["q2"][state])
        return self.tables["q"][state].copy()

    def bootstrap_values(self, state: State) -> np.ndarray:
        """Values used for bootstrapped targets: the frozen target if present."""
        if self.mode is StoreMode.TARGET:
            return self.tables["target"][state].copy()
        return self.action_values(state)

    def td_update(
        self,
        name: str,
        state: State,
        action: int,
        target: float,
        lr: float
    ) -> float:
        """
        Move Q(s, a) of one table toward target.

        Returns:
            TD error (target - Q(s, a)) before the update
        """
        if name == "target":
            raise ValueError("The target table is only changed by sync_target()")
        table = self.tables[name]
        current = table.get(state, action)
        td_error = target - current
        table.set(state, action, current + lr * td_error)
        return td_error

    def sync_target(self) -> None:
        """Hard copy of the live table into the target table."""
        if self.mode is not StoreMode.TARGET:
            raise ValueError(f"sync_target() needs a TARGET store, mode is {self.mode.value}")
        self.tables["target"].copy_from(self.tables["q"])
        self.sync_count += 1

    def to_dict(self) -> Dict[str, Dict[str, Dict[str, float]]]:
        return {name: table.to_dict() for name, table in self.tables.items()}

    def __repr__(self) -> str:
        return (
            f"ValueStore(mode={self.mode.value}, "
            f"tables={list(self.tables)}, grid={self.width}x{self.height})"
        )
