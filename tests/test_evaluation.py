"""Tests for greedy evaluation and policy rendering."""

import pytest

from gridrl.envs.gridworld import RIGHT
from gridrl.training.evaluation import evaluate, greedy_path, greedy_policy, render_policy
from gridrl.training.trainer import Trainer


@pytest.fixture
def corridor():
    """3x1 corridor, start (0, 0), goal (2, 0)."""
    return Trainer().configure(3, 1, [], (2, 0), "q_learning", seed=0)


def point_right(trainer):
    for state in [(0, 0), (1, 0)]:
        trainer.agent.values["q"].set(state, RIGHT, 1.0)


class TestEvaluate:

    def test_untrained_agent_hits_step_cap(self, corridor):
        metrics = evaluate(corridor, num_episodes=2, max_steps=5)
        # All-zero values tie-break to "up", which stays in place
        assert metrics["eval/length_mean"] == 5
        assert metrics["eval/reward_mean"] == -5.0
        assert metrics["eval/success_rate"] == 0.0

    def test_greedy_rollout_reaches_goal(self, corridor):
        point_right(corridor)
        metrics = evaluate(corridor, num_episodes=3)
        assert metrics["eval/success_rate"] == 1.0
        assert metrics["eval/length_mean"] == 2
        assert metrics["eval/reward_mean"] == 99.0
        assert metrics["eval/reward_std"] == 0.0

    def test_leaves_session_untouched(self, make_trainer):
        trainer = make_trainer()
        trainer.train(2)
        before = trainer.snapshot()
        evaluate(trainer, num_episodes=2)
        assert trainer.snapshot() == before


class TestPolicyInspection:

    def test_greedy_policy(self, corridor):
        point_right(corridor)
        assert greedy_policy(corridor) == {(0, 0): ">", (1, 0): ">"}

    def test_render_policy(self, corridor):
        point_right(corridor)
        assert render_policy(corridor) == "> > G"

    def test_render_marks_obstacles(self, make_trainer):
        lines = render_policy(make_trainer()).splitlines()
        assert len(lines) == 5
        assert lines[1].split()[1:4] == ["#", "#", "#"]
        assert lines[4].split()[4] == "G"

    def test_greedy_path_to_goal(self, corridor):
        point_right(corridor)
        assert greedy_path(corridor) == [(0, 0), (1, 0), (2, 0)]

    def test_greedy_path_stops_on_loop(self, corridor):
        assert greedy_path(corridor) == [(0, 0), (0, 0)]
