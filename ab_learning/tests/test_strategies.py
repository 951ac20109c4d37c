"""
Tests for reward functions and context extractors.
"""

import math

import pytest

from ab_learning.core.exceptions import InvalidArgument
from ab_learning.core.strategies import (
    BinaryRewardFunction,
    CostAwareRewardFunction,
    HashingContextExtractor
)


class TestRewardFunctions:
    """Test reward strategies."""

    def test_binary(self):
        fn = BinaryRewardFunction()

        assert fn.compute(True, 5000, 900) == 1.0
        assert fn.compute(False, 0, 0) == 0.0

    def test_cost_aware_penalties(self):
        fn = CostAwareRewardFunction(lambda_latency=0.1, lambda_cost=0.2, latency_scale=1000, cost_scale=100)

        assert fn.compute(True, 1000, 50) == pytest.approx(1.0 - 0.1 - 0.1)

    def test_cost_aware_is_clipped(self):
        fn = CostAwareRewardFunction(lambda_latency=1.0, latency_scale=100)

        assert fn.compute(True, 10000, 0) == 0.0
        assert fn.compute(False, 0, 0) == 0.0

    def test_cost_aware_rejects_bad_scale(self):
        with pytest.raises(InvalidArgument):
            CostAwareRewardFunction(latency_scale=0)


class TestHashingContextExtractor:
    """Test HashingContextExtractor."""

    def test_fixed_dimensions_and_unit_norm(self):
        features = HashingContextExtractor(dimensions=16).extract("Summarize the quarterly report")

        assert len(features) == 16
        assert math.sqrt(sum(f * f for f in features)) == pytest.approx(1.0)

    def test_deterministic_and_case_insensitive(self):
        extractor = HashingContextExtractor()

        assert extractor.extract("Hello World") == extractor.extract("hello world")

    def test_empty_context_is_zero_vector(self):
        assert HashingContextExtractor(dimensions=4).extract("") == [0.0] * 4

    def test_invalid_dimensions(self):
        with pytest.raises(InvalidArgument):
            HashingContextExtractor(dimensions=0)
