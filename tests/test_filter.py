import numpy as np
import numpy.testing as test
import pytest

from goalinf.errors import ConfigurationError, InputValidationError
from goalinf.goal_estimator.filter import AgentTrack, GoalBeliefFilter


PRED = [(1.0, 0.0), (0.0, 1.0), (-1.0, 0.0)]


@pytest.fixture
def belief_filter():
    return GoalBeliefFilter(max_acc=1.2, dt=0.1)


@pytest.fixture
def wide_filter():
    # wide enough that every hypothesis keeps a non-negligible likelihood
    return GoalBeliefFilter(std=0.5)


class TestConfiguration:
    def test_std_from_kinematics(self, belief_filter):
        assert belief_filter.std == pytest.approx(0.06)

    def test_std_override(self):
        assert GoalBeliefFilter(std=0.3).std == pytest.approx(0.3)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_acc": 0},
            {"max_acc": -1.2},
            {"dt": 0},
            {"dt": float("nan")},
            {"std": -0.1},
            {"corr": 1.0},
            {"prior_floor": 0.02, "floor_threshold": 0.01},
            {"prior_floor": 0},
            {"floor_threshold": 1.0},
        ],
    )
    def test_invalid_config(self, kwargs):
        with pytest.raises(ConfigurationError):
            GoalBeliefFilter(**kwargs)

    def test_save_load_state(self):
        filt = GoalBeliefFilter(max_acc=2.0, dt=0.05, prior_floor=0.001)
        other = GoalBeliefFilter()
        other.load_filter_state(filt.save_filter_state())

        assert other.std == pytest.approx(filt.std)
        assert other.prior_floor == 0.001
        assert other.floor_threshold == filt.floor_threshold


class TestLikelihoods:
    def test_closed_form(self, belief_filter):
        obs = np.array([0.95, 0.02])
        lik = belief_filter.likelihoods(obs, PRED)

        sig2 = 0.06 ** 2
        diff = obs - np.array(PRED)
        exp_lik = np.exp(-np.sum(diff ** 2, axis=1) / (2 * sig2)) / (2 * np.pi * sig2)
        test.assert_allclose(lik, exp_lik, rtol=1e-9)

    def test_peak_value(self, belief_filter):
        lik = belief_filter.likelihoods((1, 0), PRED)
        assert lik[0] == pytest.approx(1 / (2 * np.pi * 0.06 ** 2))
        assert lik[0] > 1e100 * lik[1]
        assert lik[1] > lik[2]

    @pytest.mark.parametrize(
        "obs", [(np.nan, 0.0), (0.0, np.inf), (1.0, 2.0, 3.0), "fast"]
    )
    def test_bad_observed(self, belief_filter, obs):
        with pytest.raises(InputValidationError):
            belief_filter.likelihoods(obs, PRED)

    def test_bad_predicted(self, belief_filter):
        with pytest.raises(InputValidationError):
            belief_filter.likelihoods((1, 0), [(1.0, 0.0), (np.nan, 1.0)])
        with pytest.raises(InputValidationError):
            belief_filter.likelihoods((1, 0), [1.0, 0.0, 2.0])

    def test_no_hypotheses(self, belief_filter):
        with pytest.raises(ConfigurationError):
            belief_filter.likelihoods((1, 0), [])


class TestUpdate:
    def test_reference_scenario(self, belief_filter):
        belief, next_prior = belief_filter.update((1, 0), PRED)

        assert belief[0] > 0.98
        assert belief[1] < 0.01
        assert belief[2] < 0.01
        assert np.sum(belief) == pytest.approx(1, abs=1e-6)
        assert next_prior[0] == belief[0]
        assert next_prior[1] == 0.005
        assert next_prior[2] == 0.005

    def test_belief_is_distribution(self, wide_filter):
        rng = np.random.default_rng(42)
        for num_goals in range(1, 6):
            prior = None
            for _ in range(20):
                obs = rng.normal(size=2)
                pred = rng.normal(size=(num_goals, 2))
                belief, prior = wide_filter.update(obs, pred, prior=prior)

                assert belief.shape == (num_goals,)
                assert np.all(belief >= 0)
                assert np.sum(belief) == pytest.approx(1, abs=1e-6)

    def test_single_hypothesis(self, belief_filter):
        belief, next_prior = belief_filter.update((0.3, 0.1), [(0.3, 0.0)])
        test.assert_allclose(belief, [1.0])
        test.assert_allclose(next_prior, [1.0])

    def test_monotone_convergence(self, wide_filter):
        prior = None
        hist = []
        for _ in range(10):
            belief, prior = wide_filter.update((1, 0), PRED, prior=prior)
            hist.append(belief[0])

        assert hist[0] < hist[1]
        assert np.all(np.diff(hist) > -1e-12)
        assert hist[-1] > 0.999

    def test_uses_prior(self, wide_filter):
        obs = (0, 0)
        pred = [(0.1, 0), (-0.1, 0)]
        flat, _ = wide_filter.update(obs, pred)
        biased, _ = wide_filter.update(obs, pred, prior=[0.9, 0.1])

        test.assert_allclose(flat, [0.5, 0.5])
        test.assert_allclose(biased, [0.9, 0.1])

    def test_reset_is_uniform(self, belief_filter):
        _, prior = belief_filter.update((1, 0), PRED)
        belief, next_prior = belief_filter.update((1, 0), PRED, prior=prior, reset=True)

        test.assert_array_equal(belief, np.full(3, 1 / 3))
        test.assert_array_equal(next_prior, np.full(3, 1 / 3))

    def test_reset_ignores_stale_prior(self, belief_filter):
        belief, _ = belief_filter.update((1, 0), PRED, prior=[0.5, 0.5], reset=True)
        test.assert_array_equal(belief, np.full(3, 1 / 3))

    def test_reset_still_validates(self, belief_filter):
        with pytest.raises(InputValidationError):
            belief_filter.update((np.nan, 0), PRED, reset=True)

    def test_bad_prior(self, belief_filter):
        with pytest.raises(InputValidationError):
            belief_filter.update((1, 0), PRED, prior=[0.5, 0.5])
        with pytest.raises(InputValidationError):
            belief_filter.update((1, 0), PRED, prior=[0.5, -0.1, 0.6])
        with pytest.raises(InputValidationError):
            belief_filter.update((1, 0), PRED, prior=[0.5, np.nan, 0.5])


class TestDegenerateLikelihood:
    def test_uniform_output(self, belief_filter):
        with pytest.warns(RuntimeWarning):
            belief, next_prior = belief_filter.update((10, 10), PRED)

        test.assert_array_equal(belief, np.full(3, 1 / 3))
        assert next_prior is None

    def test_prior_is_kept(self, belief_filter):
        _, prior = belief_filter.update((1, 0), PRED)
        with pytest.warns(RuntimeWarning):
            belief, kept = belief_filter.update((10, 10), PRED, prior=prior)

        test.assert_array_equal(belief, np.full(3, 1 / 3))
        test.assert_array_equal(kept, prior)

        # equal likelihoods, so the output is the normalized pre-degenerate prior
        belief, _ = belief_filter.update((0, 0), [(0, 0)] * 3, prior=kept)
        test.assert_allclose(belief, prior / np.sum(prior))
        assert belief[0] > 0.98


class TestAntiCollapse:
    def test_floor_applied(self, belief_filter):
        belief, next_prior = belief_filter.update((1, 0), PRED)
        assert belief[1] < 0.005
        assert next_prior[1] == 0.005

    def test_above_threshold_not_floored(self):
        filt = GoalBeliefFilter(std=1.0)
        belief, next_prior = filt.update((0, 0), [(0, 0), (0, 0)], prior=[0.98, 0.02])
        assert belief[1] == pytest.approx(0.02)
        assert next_prior[1] == belief[1]

    def test_custom_floor(self):
        filt = GoalBeliefFilter(prior_floor=0.02, floor_threshold=0.05)
        _, next_prior = filt.update((1, 0), PRED)
        test.assert_array_equal(next_prior[1:], [0.02, 0.02])

    def test_recovery(self, belief_filter):
        _, prior = belief_filter.update((1, 0), PRED)
        belief, _ = belief_filter.update((0, 1), PRED, prior=prior)
        assert belief[1] > 0.98

    def test_zero_prior_locks_in(self, belief_filter):
        belief, _ = belief_filter.update((0, 1), PRED, prior=[1.0, 0.0, 0.0])
        test.assert_array_equal(belief, [1.0, 0.0, 0.0])


class TestUpdateTrack:
    def test_first_update(self, belief_filter):
        track = AgentTrack("robot_1", created=4)
        belief, new_track = belief_filter.update_track(track, (1, 0), PRED)

        assert belief[0] > 0.98
        assert new_track.initialized
        assert new_track.created == 4
        test.assert_array_equal(new_track.prior[1:], [0.005, 0.005])
        assert len(new_track.history) == 1

        assert not track.initialized
        assert track.prior is None
        assert len(track.history) == 0

    def test_pending_reset(self, belief_filter):
        _, track = belief_filter.update_track(AgentTrack(0), (1, 0), PRED)
        track.reset_pending = True

        belief, new_track = belief_filter.update_track(track, (1, 0), PRED)
        test.assert_array_equal(belief, np.full(3, 1 / 3))
        assert not new_track.reset_pending
        assert new_track.initialized

    def test_pending_reset_new_hypothesis_count(self, belief_filter):
        _, track = belief_filter.update_track(AgentTrack(0), (1, 0), PRED)
        track.reset_pending = True

        belief, new_track = belief_filter.update_track(track, (1, 0), PRED[:2])
        test.assert_array_equal(belief, [0.5, 0.5])
        assert new_track.prior.size == 2

    def test_degenerate_leaves_uninitialized(self, belief_filter):
        with pytest.warns(RuntimeWarning):
            _, track = belief_filter.update_track(AgentTrack(0), (10, 10), PRED)

        assert not track.initialized
        assert track.prior is None
        assert len(track.history) == 1

    def test_history_bounded(self, belief_filter):
        track = AgentTrack(0, history_len=3)
        for _ in range(5):
            _, track = belief_filter.update_track(track, (1, 0), PRED)
        assert len(track.history) == 3

    def test_save_load_track(self, belief_filter):
        _, track = belief_filter.update_track(AgentTrack("a", created=2), (1, 0), PRED)
        loaded = AgentTrack.load_track_state(track.save_track_state())

        assert loaded.agent_id == "a"
        assert loaded.created == 2
        assert loaded.initialized
        test.assert_array_equal(loaded.prior, track.prior)
        test.assert_array_equal(loaded.history[0], track.history[0])
