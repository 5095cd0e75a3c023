"""Tests for the grid-world environment."""

import numpy as np
import pytest

from gridrl.envs.gridworld import (
    ACTIONS,
    DOWN,
    GOAL_REWARD,
    LEFT,
    RIGHT,
    STEP_REWARD,
    UP,
    GridWorldEnvironment,
    InvalidStateError,
    render_text,
)


class TestTransition:
    """Tests for the pure transition function."""

    def test_moves_one_cell(self, env):
        assert env.transition((0, 0), RIGHT) == (1, 0)
        assert env.transition((0, 0), DOWN) == (0, 1)

    def test_up_decreases_y(self):
        env = GridWorldEnvironment(3, 3, obstacles=[], goal=(2, 2))
        assert env.transition((1, 1), UP) == (1, 0)
        assert env.transition((1, 1), LEFT) == (0, 1)

    def test_clamped_at_border(self, env):
        assert env.transition((0, 0), UP) == (0, 0)
        assert env.transition((0, 0), LEFT) == (0, 0)
        assert env.transition((4, 4), RIGHT) == (4, 4)
        assert env.transition((4, 4), DOWN) == (4, 4)

    def test_obstacle_blocks_move(self, env):
        # (1, 1) is an obstacle
        assert env.transition((1, 0), DOWN) == (1, 0)
        assert env.transition((0, 1), RIGHT) == (0, 1)

    def test_never_leaves_free_cells(self, env):
        for state in env.states():
            for action in ACTIONS:
                nxt = env.transition(state, action)
                assert env.in_bounds(nxt)
                assert not env.is_obstacle(nxt)


class TestReward:
    """Tests for rewards and terminal detection."""

    def test_goal_reward(self, env):
        assert env.reward((4, 4)) == GOAL_REWARD
        assert env.is_terminal((4, 4))

    def test_step_reward(self, env):
        assert env.reward((0, 1)) == STEP_REWARD
        assert not env.is_terminal((0, 1))

    def test_obstacle_reward(self, env):
        assert env.reward((1, 1)) == -50.0


class TestLayout:
    """Tests for layout queries."""

    def test_states_excludes_obstacles(self, env):
        states = env.states()
        assert len(states) == 25 - 5
        assert (1, 1) not in states

    def test_shortest_path_is_eight(self, env):
        assert env.shortest_path_length() == 8

    def test_unreachable_goal(self):
        env = GridWorldEnvironment(3, 1, obstacles=[(1, 0)], goal=(2, 0))
        assert env.shortest_path_length() is None
        assert env.reachable_states() == [(0, 0)]

    def test_validate_state_rejects_obstacle(self, env):
        with pytest.raises(InvalidStateError):
            env.validate_state((1, 1))

    def test_validate_state_rejects_out_of_bounds(self, env):
        with pytest.raises(InvalidStateError):
            env.validate_state((5, 0))

    def test_render_text(self, env):
        text = render_text(env, agent_pos=(0, 0))
        rows = text.split("\n")
        assert rows[0].startswith("A")
        assert rows[1] == ". # # # ."
        assert rows[4].endswith("G")


class TestGymnasiumAPI:
    """Tests for reset/step."""

    def test_reset_places_agent_at_start(self, env):
        obs, info = env.reset(seed=0)
        assert obs.tolist() == [0, 0]
        assert info["steps"] == 0
        assert env.observation_space.contains(obs)

    def test_step_to_goal_terminates(self):
        env = GridWorldEnvironment(3, 1, obstacles=[], goal=(2, 0))
        env.reset()
        env.step(RIGHT)
        obs, reward, terminated, truncated, _ = env.step(RIGHT)
        assert obs.tolist() == [2, 0]
        assert reward == GOAL_REWARD
        assert terminated and not truncated

    def test_truncates_at_step_cap(self):
        env = GridWorldEnvironment(5, 5, obstacles=[], goal=(4, 4), max_steps=3)
        env.reset()
        results = [env.step(UP) for _ in range(3)]
        assert [r[3] for r in results] == [False, False, True]
        assert not any(r[2] for r in results)

    def test_render_ansi(self):
        env = GridWorldEnvironment(render_mode="ansi")
        env.reset()
        assert "A" in env.render()

    def test_observation_dtype(self, env):
        obs, _ = env.reset()
        assert obs.dtype == np.int64
