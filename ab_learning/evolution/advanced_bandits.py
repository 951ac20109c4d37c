"""
Multi-Armed Bandit Selection

Features:
- Thompson Sampling over stored Beta posteriors
- Context-aware selection (simplified LinUCB-style score)
- Adaptive exploration scheduling (decaying exploration rate)
"""

import math
import logging
import threading
from typing import Dict, List, Sequence

from ..core.exceptions import InvalidArgument
from ..storage.posterior_store import PosteriorStore
from .bayesian_sampler import BayesianSampler

logger = logging.getLogger(__name__)


def validate_candidates(candidate_ids: Sequence[str]) -> List[str]:
    """Reject empty or duplicated candidate lists"""
    candidates = list(candidate_ids)
    if not candidates:
        raise InvalidArgument("At least one candidate variant is required")
    if len(set(candidates)) != len(candidates):
        raise InvalidArgument(f"Candidate variants must be unique: {candidates}")
    return candidates


def argmax_first(scores: Sequence[float]) -> int:
    """Index of the largest score; ties go to the earliest index"""
    best_idx = 0
    for idx in range(1, len(scores)):
        if scores[idx] > scores[best_idx]:
            best_idx = idx
    return best_idx


class AdaptiveExplorationScheduler:
    """Holds the exploration rate and decays it toward a floor"""

    def __init__(self, initial_exploration: float = 0.3, min_exploration: float = 0.05, decay_rate: float = 0.95):
        if not 0.0 < decay_rate <= 1.0:
            raise InvalidArgument(f"decay_rate must be in (0, 1], got {decay_rate}")
        self.initial_exploration = initial_exploration
        self.min_exploration = min_exploration
        self.decay_rate = decay_rate
        self._current = initial_exploration
        self._lock = threading.Lock()
        self.exploration_history: List[float] = [initial_exploration]

    @property
    def current_exploration(self) -> float:
        with self._lock:
            return self._current

    def decay(self) -> float:
        """Apply one decay step and return the new rate"""
        with self._lock:
            self._current = max(self.min_exploration, self._current * self.decay_rate)
            self.exploration_history.append(self._current)
            if len(self.exploration_history) > 1000:
                self.exploration_history = self.exploration_history[-1000:]
            return self._current

    def reset(self):
        with self._lock:
            self._current = self.initial_exploration
            self.exploration_history = [self.initial_exploration]


class ThompsonSamplingSelector:
    """Thompson Sampling - draw from each posterior, pick the best draw"""

    def __init__(self, posterior_store: PosteriorStore, sampler: BayesianSampler):
        self.posterior_store = posterior_store
        self.sampler = sampler
        self._selections = 0
        self._count_lock = threading.Lock()

    @property
    def total_selections(self) -> int:
        with self._count_lock:
            return self._selections

    def sample_all(self, candidate_ids: Sequence[str]) -> Dict[str, float]:
        """One Beta draw per candidate, keyed by id in input order"""
        candidates = validate_candidates(candidate_ids)
        samples = {}
        for variant_id in candidates:
            posterior = self.posterior_store.get(variant_id)
            samples[variant_id] = self.sampler.sample_beta(posterior.alpha, posterior.beta)
        return samples

    def select(self, candidate_ids: Sequence[str]) -> str:
        """
        Select a variant using Thompson Sampling

        Args:
            candidate_ids: Non-empty ordered ids without duplicates

        Returns:
            Id with the highest posterior draw (first occurrence on ties)
        """
        samples = self.sample_all(candidate_ids)
        ids = list(samples.keys())
        selected = ids[argmax_first(list(samples.values()))]
        with self._count_lock:
            self._selections += 1
        logger.debug(f"Thompson selected {selected} (sample={samples[selected]:.3f}) from {len(ids)} candidates")
        return selected


class ContextualBanditSelector:
    """
    Context-aware selector with a LinUCB-shaped score

    score = mean(features) + exploration_rate * sqrt(len(features))

    No per-variant weights or covariance are kept, so every candidate scores
    the same and the first candidate always wins.
    """

    def __init__(self, exploration: AdaptiveExplorationScheduler):
        self.exploration = exploration

    def score(self, features: Sequence[float], exploration_rate: float) -> float:
        """Reward estimate plus uncertainty bonus"""
        if len(features) == 0:
            raise InvalidArgument("Feature vector must not be empty")
        reward_estimate = sum(features) / len(features)
        uncertainty = exploration_rate * math.sqrt(len(features))
        return reward_estimate + uncertainty

    def select(self, candidate_ids: Sequence[str], features: Sequence[float]) -> str:
        """
        Select a variant for a context

        Args:
            candidate_ids: Non-empty ordered ids without duplicates
            features: Context feature vector shared by all candidates

        Returns:
            Id with the highest score (first occurrence on ties)
        """
        candidates = validate_candidates(candidate_ids)
        features = [float(f) for f in features]
        rate = self.exploration.current_exploration
        scores = [self.score(features, rate) for _ in candidates]
        selected = candidates[argmax_first(scores)]
        logger.debug(f"Contextual selected {selected} (score={max(scores):.3f}, exploration={rate:.3f})")
        return selected
