"""
Tests for the Monte-Carlo A/B evaluator.
"""

import time

import pytest

from ab_learning.core.exceptions import InvalidArgument
from ab_learning.evolution.ab_evaluator import StatisticalEvaluator
from ab_learning.evolution.bayesian_sampler import BayesianSampler
from ab_learning.storage import FeedbackEvent


def feed(posterior_store, variant_id, success, count):
    for i in range(count):
        posterior_store.apply_feedback(FeedbackEvent(
            task_id=f"{variant_id}-{i}",
            variant_id=variant_id,
            reward=1.0 if success else 0.0,
            latency_ms=100.0,
            token_cost=10.0,
            success=success,
            timestamp=time.time()
        ))


class TestStatisticalEvaluator:
    """Test StatisticalEvaluator."""

    def test_clear_winner(self, storage, posterior_store):
        """30 successes vs 30 failures: A wins with confidence > 0.9."""
        a = storage.create_variant("A").id
        b = storage.create_variant("B").id
        feed(posterior_store, a, True, 30)
        feed(posterior_store, b, False, 30)

        evaluator = StatisticalEvaluator(posterior_store, BayesianSampler(seed=10))
        result = evaluator.evaluate(a, b)

        assert result.winner == a
        assert result.confidence > 0.9
        assert result.p_value < 0.05
        assert result.n_trials == 10000

    def test_winner_can_be_b(self, storage, posterior_store):
        a = storage.create_variant("A").id
        b = storage.create_variant("B").id
        feed(posterior_store, a, False, 20)
        feed(posterior_store, b, True, 20)

        result = StatisticalEvaluator(posterior_store, BayesianSampler(seed=11), n_trials=2000).evaluate(a, b)

        assert result.winner == b
        assert result.prob_a_wins < 0.05

    def test_no_winner_for_equal_priors(self, posterior_store):
        """Two default priors are not significantly different."""
        result = StatisticalEvaluator(posterior_store, BayesianSampler(seed=12)).evaluate("x", "y")

        assert result.winner is None
        assert 0.5 <= result.confidence <= 0.95
        assert 0.0 <= result.p_value <= 1.0

    def test_confidence_and_p_value_relation(self, posterior_store):
        """confidence = max(p, 1-p) and p_value = 2 * min(p, 1-p)."""
        result = StatisticalEvaluator(posterior_store, BayesianSampler(seed=13), n_trials=500).evaluate("x", "y")

        p = result.prob_a_wins
        assert result.confidence == pytest.approx(max(p, 1 - p))
        assert result.p_value == pytest.approx(2 * min(p, 1 - p))

    def test_seeded_evaluations_match(self, posterior_store):
        r1 = StatisticalEvaluator(posterior_store, BayesianSampler(seed=3), n_trials=300).evaluate("x", "y")
        r2 = StatisticalEvaluator(posterior_store, BayesianSampler(seed=3), n_trials=300).evaluate("x", "y")

        assert r1.to_dict() == r2.to_dict()

    def test_invalid_trial_count(self, posterior_store, sampler):
        with pytest.raises(InvalidArgument):
            StatisticalEvaluator(posterior_store, sampler, n_trials=0)
