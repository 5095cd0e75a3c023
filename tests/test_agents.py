"""Tests for the four update rules."""

import math

import numpy as np
import pytest

from gridrl.agents import DQNLiteAgent, QLearningAgent, SACLiteAgent, SARSAAgent
from gridrl.envs.gridworld import DOWN, LEFT, RIGHT, UP, GridWorldEnvironment
from gridrl.utils.config_schema import Algorithm, Hyperparameters
from gridrl.utils.replay_buffer import Experience


def hyperparameters(algorithm, **overrides):
    return Hyperparameters.for_algorithm(algorithm, overrides)


class TestQLearningAgent:
    """Tests for off-policy Q-learning."""

    def test_zero_initialised(self, env, rng):
        agent = QLearningAgent(env, hyperparameters(Algorithm.Q_LEARNING), rng)
        assert np.all(agent.values["q"].values == 0.0)
        assert agent.epsilon == pytest.approx(0.3)

    def test_update_uses_max_next_value(self, env, rng):
        agent = QLearningAgent(env, hyperparameters(Algorithm.Q_LEARNING), rng)
        agent.values["q"].set((1, 0), RIGHT, 10.0)
        agent.values["q"].set((1, 0), LEFT, 2.0)

        metrics = agent.update(Experience((0, 0), RIGHT, -1.0, (1, 0), False, 0))

        # target = -1 + 0.9 * 10 = 8; Q = 0 + 0.1 * 8
        assert metrics["td_error"] == pytest.approx(8.0)
        assert metrics["value_delta"] == pytest.approx(0.8)
        assert agent.values["q"].get((0, 0), RIGHT) == pytest.approx(0.8)

    def test_terminal_target_is_reward(self, env, rng):
        agent = QLearningAgent(env, hyperparameters(Algorithm.Q_LEARNING), rng)
        agent.values["q"].set((4, 4), UP, 50.0)
        agent.update(Experience((4, 3), DOWN, 100.0, (4, 4), True, 0))
        assert agent.values["q"].get((4, 3), DOWN) == pytest.approx(10.0)

    def test_end_episode_decays_epsilon(self, env, rng):
        agent = QLearningAgent(env, hyperparameters(Algorithm.Q_LEARNING), rng)
        result = agent.end_episode()
        assert result["epsilon"] == pytest.approx(0.297)
        assert agent.episode_count == 1

    def test_greedy_action_tie_break(self, env, rng):
        agent = QLearningAgent(env, hyperparameters(Algorithm.Q_LEARNING), rng)
        assert agent.greedy_action((0, 0)) == UP

    def test_snapshot(self, env, rng):
        agent = QLearningAgent(env, hyperparameters(Algorithm.Q_LEARNING), rng)
        snapshot = agent.snapshot()
        assert snapshot["policy_tables"] is None
        assert snapshot["exploration"] == {"name": "epsilon", "value": pytest.approx(0.3)}
        assert set(snapshot["value_tables"]) == {"q"}


class TestSARSAAgent:
    """Tests for on-policy SARSA."""

    def test_target_uses_next_action(self, env, rng):
        agent = SARSAAgent(env, hyperparameters(Algorithm.SARSA), rng)
        agent.values["q"].set((1, 0), RIGHT, 10.0)
        agent.values["q"].set((1, 0), LEFT, 2.0)

        metrics = agent.update(
            Experience((0, 0), RIGHT, -1.0, (1, 0), False, 0), next_action=LEFT
        )

        # target = -1 + 0.9 * Q((1, 0), left) = 0.8
        assert metrics["td_error"] == pytest.approx(0.8)
        assert agent.values["q"].get((0, 0), RIGHT) == pytest.approx(0.08)

    def test_requires_next_action(self, env, rng):
        agent = SARSAAgent(env, hyperparameters(Algorithm.SARSA), rng)
        with pytest.raises(ValueError, match="next_action"):
            agent.update(Experience((0, 0), RIGHT, -1.0, (1, 0), False, 0))

    def test_terminal_needs_no_next_action(self, env, rng):
        agent = SARSAAgent(env, hyperparameters(Algorithm.SARSA), rng)
        metrics = agent.update(Experience((4, 3), DOWN, 100.0, (4, 4), True, 0))
        assert metrics["td_error"] == pytest.approx(100.0)

    def test_is_on_policy(self, env, rng):
        assert SARSAAgent(env, hyperparameters(Algorithm.SARSA), rng).is_on_policy
        assert not QLearningAgent(env, hyperparameters(Algorithm.Q_LEARNING), rng).is_on_policy


class TestDQNLiteAgent:
    """Tests for replay and target-table behaviour."""

    def test_random_initialisation_with_matching_target(self, env, rng):
        agent = DQNLiteAgent(env, hyperparameters(Algorithm.DQN_LITE), rng)
        q = agent.values["q"].values
        assert q.min() >= -5.0 and q.max() <= 5.0
        np.testing.assert_array_equal(q, agent.values["target"].values)

    def test_defaults(self, env, rng):
        agent = DQNLiteAgent(env, hyperparameters(Algorithm.DQN_LITE), rng)
        assert agent.epsilon == 1.0
        assert agent.gamma == 0.99
        assert agent.target_update_freq == 10

    def test_bootstraps_off_target(self, env, rng):
        agent = DQNLiteAgent(env, hyperparameters(Algorithm.DQN_LITE), rng)
        agent.values["q"].values[1, 0] = 100.0
        agent.values["target"].values[1, 0] = 0.0
        before = agent.values["q"].get((0, 0), RIGHT)

        metrics = agent.update(Experience((0, 0), RIGHT, -1.0, (1, 0), False, 0))

        assert metrics["td_error"] == pytest.approx(-1.0 - before)
        assert metrics["batch_size"] == 0
        assert metrics["replay_loss"] == 0.0

    def test_target_syncs_every_interval(self, env, rng):
        agent = DQNLiteAgent(
            env, hyperparameters(Algorithm.DQN_LITE, target_sync_interval=3), rng
        )
        exp = Experience((0, 0), RIGHT, -1.0, (1, 0), False, 0)
        synced = [agent.update(exp)["target_synced"] for _ in range(7)]
        assert synced == [False, False, True, False, False, True, False]
        assert agent.values.sync_count == 2
        # Live table changed once more since the last sync
        assert not np.array_equal(agent.values["q"].values, agent.values["target"].values)

    def test_replay_batch_is_applied(self, env, rng):
        agent = DQNLiteAgent(env, hyperparameters(Algorithm.DQN_LITE), rng)
        replayed = Experience((2, 0), RIGHT, -1.0, (3, 0), False, 0)
        before = agent.values["q"].get((2, 0), RIGHT)

        metrics = agent.update(
            Experience((0, 0), RIGHT, -1.0, (1, 0), False, 1), batch=[replayed, replayed]
        )

        assert metrics["batch_size"] == 2
        assert metrics["replay_loss"] > 0.0
        assert agent.values["q"].get((2, 0), RIGHT) != pytest.approx(before)
        assert agent.update_count == 3


class TestSACLiteAgent:
    """Tests for twin critics, soft targets and the stochastic policy."""

    def test_initial_state(self, env, rng):
        agent = SACLiteAgent(env, hyperparameters(Algorithm.SAC_LITE), rng)
        q1 = agent.values["q1"].values
        assert q1.min() >= -2.5 and q1.max() <= 2.5
        assert not np.array_equal(q1, agent.values["q2"].values)
        np.testing.assert_allclose(agent.policy.probabilities, 0.25)
        assert agent.temperature == pytest.approx(0.2)

    def test_both_critics_move_toward_same_target(self, env, rng):
        agent = SACLiteAgent(env, hyperparameters(Algorithm.SAC_LITE), rng)
        q1_before = agent.values["q1"].get((3, 4), RIGHT)
        q2_before = agent.values["q2"].get((3, 4), RIGHT)

        metrics = agent.update(Experience((3, 4), RIGHT, 100.0, (4, 4), True, 0))

        assert agent.values["q1"].get((3, 4), RIGHT) == pytest.approx(q1_before + 0.1 * (100.0 - q1_before))
        assert agent.values["q2"].get((3, 4), RIGHT) == pytest.approx(q2_before + 0.1 * (100.0 - q2_before))
        assert metrics["q1_loss"] == pytest.approx((100.0 - q1_before) ** 2)

    def test_soft_target_uses_next_state_policy(self, env, rng):
        agent = SACLiteAgent(env, hyperparameters(Algorithm.SAC_LITE), rng)
        expected_v = agent.soft_value((1, 0))
        target = agent.compute_td_target(-1.0, (1, 0), False)
        assert target == pytest.approx(-1.0 + 0.99 * expected_v)

    def test_policy_normalised_after_update(self, env, rng):
        agent = SACLiteAgent(env, hyperparameters(Algorithm.SAC_LITE), rng)
        metrics = agent.update(Experience((0, 0), RIGHT, -1.0, (1, 0), False, 0))
        assert sum(metrics["probabilities"].values()) == pytest.approx(1.0, abs=1e-6)
        assert set(metrics["probabilities"]) == {"up", "down", "left", "right"}
        assert 0.0 <= metrics["entropy"] <= math.log(4) + 1e-9

    def test_policy_loss(self, env, rng):
        agent = SACLiteAgent(env, hyperparameters(Algorithm.SAC_LITE), rng)
        metrics = agent.update(Experience((0, 0), RIGHT, -1.0, (1, 0), False, 0))
        probs = np.array([metrics["probabilities"][a] for a in ("up", "down", "left", "right")])
        min_q = agent.values.action_values((0, 0))
        expected = -(float(np.dot(probs, min_q)) + agent.temperature * metrics["entropy"])
        assert metrics["policy_loss"] == pytest.approx(expected)

    def test_temperature_tuned_once_per_episode(self, env, rng):
        agent = SACLiteAgent(
            env, hyperparameters(Algorithm.SAC_LITE, target_entropy=0.0), rng
        )
        agent.update(Experience((0, 0), RIGHT, -1.0, (1, 0), False, 0))
        assert agent.temperature == pytest.approx(0.2)

        result = agent.end_episode()

        assert result["temperature"] < 0.2
        assert result["temperature"] >= 0.01
        assert result["temperature_loss"] > 0.0

    def test_temperature_fixed_without_auto_tuning(self, env, rng):
        agent = SACLiteAgent(
            env, hyperparameters(Algorithm.SAC_LITE, auto_temperature=False), rng
        )
        agent.update(Experience((0, 0), RIGHT, -1.0, (1, 0), False, 0))
        agent.end_episode()
        assert agent.temperature == pytest.approx(0.2)

    def test_evaluation_takes_most_probable_action(self, rng):
        env = GridWorldEnvironment(3, 1, obstacles=[], goal=(2, 0))
        agent = SACLiteAgent(env, hyperparameters(Algorithm.SAC_LITE), rng)
        agent.policy.probabilities[0, 0] = [0.1, 0.1, 0.1, 0.7]
        assert agent.select_action((0, 0), training=False) == RIGHT

    def test_snapshot_has_policy_tables(self, env, rng):
        agent = SACLiteAgent(env, hyperparameters(Algorithm.SAC_LITE), rng)
        snapshot = agent.snapshot()
        assert snapshot["exploration"]["name"] == "temperature"
        assert "0,0" in snapshot["policy_tables"]
        assert set(snapshot["value_tables"]) == {"q1", "q2"}
