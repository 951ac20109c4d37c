"""
Tests for selection policies.

Tests Thompson sampling, the simplified contextual selector and the
adaptive exploration scheduler.
"""

import threading

import pytest

from ab_learning.core.exceptions import InvalidArgument
from ab_learning.evolution.advanced_bandits import (
    AdaptiveExplorationScheduler,
    ContextualBanditSelector,
    ThompsonSamplingSelector,
    argmax_first,
    validate_candidates
)
from ab_learning.evolution.bayesian_sampler import BayesianSampler


class TestCandidateValidation:
    """Test candidate list preconditions."""

    def test_empty_rejected(self):
        with pytest.raises(InvalidArgument):
            validate_candidates([])

    def test_duplicates_rejected(self):
        with pytest.raises(InvalidArgument):
            validate_candidates(["a", "b", "a"])

    def test_argmax_ties_go_first(self):
        """Ties resolve to the first occurrence."""
        assert argmax_first([0.2, 0.7, 0.7, 0.1]) == 1
        assert argmax_first([0.5, 0.5]) == 0


class TestThompsonSampling:
    """Test ThompsonSamplingSelector."""

    def test_prefers_strong_posterior(self, storage, posterior_store, set_posterior):
        """A (21, 1) beats B (1, 6) in more than 70% of 50 selections."""
        a = storage.create_variant("A").id
        b = storage.create_variant("B").id
        set_posterior(a, alpha=21.0, beta=1.0, total_trials=20, avg_reward=1.0)
        set_posterior(b, alpha=1.0, beta=6.0, total_trials=5, avg_reward=0.0)

        selector = ThompsonSamplingSelector(posterior_store, BayesianSampler(seed=2024))
        picks = [selector.select([b, a]) for _ in range(50)]

        assert picks.count(a) / len(picks) > 0.7
        assert selector.total_selections == 50

    def test_concurrent_selections_are_all_counted(self, posterior_store, sampler):
        """Selections from several threads are counted exactly."""
        selector = ThompsonSamplingSelector(posterior_store, sampler)

        def worker():
            for _ in range(100):
                selector.select(["a", "b"])

        threads = [threading.Thread(target=worker) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert selector.total_selections == 600

    def test_single_candidate(self, posterior_store, sampler):
        selector = ThompsonSamplingSelector(posterior_store, sampler)

        assert selector.select(["only"]) == "only"

    def test_unknown_ids_use_default_prior(self, storage, posterior_store, sampler):
        """Selection over unknown ids works and writes nothing."""
        selector = ThompsonSamplingSelector(posterior_store, sampler)

        assert selector.select(["x", "y"]) in ("x", "y")
        assert storage.get_posterior("x") is None

    def test_empty_candidates(self, posterior_store, sampler):
        selector = ThompsonSamplingSelector(posterior_store, sampler)

        with pytest.raises(InvalidArgument):
            selector.select([])

    def test_seeded_selection_is_reproducible(self, storage, posterior_store):
        """Same seed, same posteriors, same choices."""
        ids = [storage.create_variant(f"v{i}").id for i in range(4)]

        first = ThompsonSamplingSelector(posterior_store, BayesianSampler(seed=5))
        second = ThompsonSamplingSelector(posterior_store, BayesianSampler(seed=5))

        assert [first.select(ids) for _ in range(20)] == [second.select(ids) for _ in range(20)]

    def test_sample_all_keeps_input_order(self, posterior_store, sampler):
        selector = ThompsonSamplingSelector(posterior_store, sampler)

        samples = selector.sample_all(["c", "a", "b"])

        assert list(samples.keys()) == ["c", "a", "b"]
        assert all(0.0 < s < 1.0 for s in samples.values())


class TestContextualSelection:
    """Test ContextualBanditSelector."""

    def test_score_formula(self):
        """score = mean(features) + rate * sqrt(len(features))."""
        selector = ContextualBanditSelector(AdaptiveExplorationScheduler())

        assert selector.score([0.2, 0.4, 0.6, 0.8], 0.3) == pytest.approx(0.5 + 0.3 * 2.0)

    def test_identical_scores_pick_first(self):
        """Every candidate scores the same, so the first one wins."""
        selector = ContextualBanditSelector(AdaptiveExplorationScheduler())

        assert selector.select(["b", "a", "c"], [1.0, 0.0]) == "b"

    def test_empty_features_rejected(self):
        selector = ContextualBanditSelector(AdaptiveExplorationScheduler())

        with pytest.raises(InvalidArgument):
            selector.select(["a"], [])

    def test_empty_candidates_rejected(self):
        selector = ContextualBanditSelector(AdaptiveExplorationScheduler())

        with pytest.raises(InvalidArgument):
            selector.select([], [0.5])


class TestAdaptiveExploration:
    """Test AdaptiveExplorationScheduler."""

    def test_decay_step(self):
        scheduler = AdaptiveExplorationScheduler(initial_exploration=0.3, decay_rate=0.95)

        assert scheduler.decay() == pytest.approx(0.285)
        assert scheduler.current_exploration == pytest.approx(0.285)

    def test_decay_floor(self):
        """The rate never drops below the floor."""
        scheduler = AdaptiveExplorationScheduler(initial_exploration=0.3, min_exploration=0.05)

        for _ in range(200):
            scheduler.decay()

        assert scheduler.current_exploration == 0.05

    def test_reset(self):
        scheduler = AdaptiveExplorationScheduler(initial_exploration=0.3)
        scheduler.decay()

        scheduler.reset()

        assert scheduler.current_exploration == 0.3
        assert scheduler.exploration_history == [0.3]

    def test_invalid_decay_rate(self):
        with pytest.raises(InvalidArgument):
            AdaptiveExplorationScheduler(decay_rate=0.0)
