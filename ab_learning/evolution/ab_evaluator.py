"""
A/B Significance Evaluation
Monte-Carlo estimate of P(A > B) from two Beta posteriors
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from ..core.exceptions import InvalidArgument
from ..storage.posterior_store import PosteriorStore
from .bayesian_sampler import BayesianSampler

logger = logging.getLogger(__name__)


@dataclass
class ABTestResult:
    """Outcome of a pairwise significance test"""
    variant_a: str
    variant_b: str
    winner: Optional[str]
    confidence: float  # In [0.5, 1]
    p_value: float     # In [0, 1]
    prob_a_wins: float
    n_trials: int

    def to_dict(self) -> Dict:
        return {
            'variant_a': self.variant_a,
            'variant_b': self.variant_b,
            'winner': self.winner,
            'confidence': self.confidence,
            'p_value': self.p_value,
            'prob_a_wins': self.prob_a_wins,
            'n_trials': self.n_trials
        }


class StatisticalEvaluator:
    """
    Decides whether one variant is significantly better than another

    The estimate is stochastic; n_trials is the only precision control.
    Two evaluations of the same posteriors can differ unless the sampler is
    seeded.
    """

    def __init__(
        self,
        posterior_store: PosteriorStore,
        sampler: BayesianSampler,
        n_trials: int = 10000,
        confidence_threshold: float = 0.95
    ):
        """
        Initialize evaluator

        Args:
            posterior_store: Source of posteriors
            sampler: Beta sampler
            n_trials: Monte-Carlo draws per evaluation
            confidence_threshold: Confidence above which a winner is declared
        """
        if n_trials <= 0:
            raise InvalidArgument(f"n_trials must be positive, got {n_trials}")
        self.posterior_store = posterior_store
        self.sampler = sampler
        self.n_trials = n_trials
        self.confidence_threshold = confidence_threshold

    def evaluate(self, variant_a: str, variant_b: str) -> ABTestResult:
        """
        Evaluate statistical significance between two variants

        Args:
            variant_a: First variant id
            variant_b: Second variant id

        Returns:
            ABTestResult with winner (or None), confidence and p-value
        """
        perf_a = self.posterior_store.get(variant_a)
        perf_b = self.posterior_store.get(variant_b)

        wins_a = 0
        for _ in range(self.n_trials):
            sample_a = self.sampler.sample_beta(perf_a.alpha, perf_a.beta)
            sample_b = self.sampler.sample_beta(perf_b.alpha, perf_b.beta)
            if sample_a > sample_b:
                wins_a += 1

        prob_a_wins = wins_a / self.n_trials
        confidence = max(prob_a_wins, 1.0 - prob_a_wins)
        p_value = 2.0 * min(prob_a_wins, 1.0 - prob_a_wins)

        winner = None
        if confidence > self.confidence_threshold:
            winner = variant_a if prob_a_wins > 0.5 else variant_b

        logger.info(
            f"A/B test {variant_a[:8]} vs {variant_b[:8]}: P(A>B)={prob_a_wins:.4f}, "
            f"confidence={confidence:.4f}, winner={winner[:8] if winner else None}"
        )

        return ABTestResult(
            variant_a=variant_a,
            variant_b=variant_b,
            winner=winner,
            confidence=confidence,
            p_value=p_value,
            prob_a_wins=prob_a_wins,
            n_trials=self.n_trials
        )
