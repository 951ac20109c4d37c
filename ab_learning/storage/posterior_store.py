"""
Posterior Store
Per-variant Bayesian statistics with serialized read-modify-write updates
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Dict, Iterator

from ..core.exceptions import InvalidArgument
from .variant_storage import FeedbackEvent, PerformancePosterior, VariantStorage

logger = logging.getLogger(__name__)

BOOSTABLE_FIELDS = ('alpha', 'beta')


def incremental_mean(old_avg: float, old_n: int, new_value: float) -> float:
    """Running mean after folding in one more value"""
    return (old_avg * old_n + new_value) / (old_n + 1)


class PosteriorStore:
    """
    Owner of the shared posterior state

    Two update paths write the same posterior: feedback (alpha/beta plus
    trial count and averages) and preference boosts (alpha/beta only). After
    any boost, total_trials no longer equals alpha + beta - 2; readers must
    not derive one from the other.
    """

    def __init__(self, storage: VariantStorage):
        self.storage = storage
        # variant_id -> [lock, holders and waiters]
        self._locks: Dict[str, list] = {}
        self._registry_lock = threading.Lock()

    @contextmanager
    def lock_for(self, variant_id: str) -> Iterator[None]:
        """
        Hold the lock that serializes updates to one variant

        Entries live only while some caller holds or waits on them, so ids
        that are no longer updated do not accumulate locks.
        """
        with self._registry_lock:
            entry = self._locks.get(variant_id)
            if entry is None:
                entry = [threading.RLock(), 0]
                self._locks[variant_id] = entry
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._registry_lock:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[variant_id]

    def active_locks(self) -> int:
        """Number of variant ids currently held or awaited"""
        with self._registry_lock:
            return len(self._locks)

    def get(self, variant_id: str) -> PerformancePosterior:
        """
        Current posterior for a variant

        Unknown ids get a transient Beta(1, 1) prior; nothing is written.
        """
        posterior = self.storage.get_posterior(variant_id)
        if posterior is None:
            return PerformancePosterior.default(variant_id)
        return posterior

    def apply_feedback(self, event: FeedbackEvent) -> PerformancePosterior:
        """
        Fold one feedback event into the variant's posterior

        Args:
            event: Observed outcome

        Returns:
            The updated posterior
        """
        with self.lock_for(event.variant_id):
            current = self.get(event.variant_id)
            n = current.total_trials

            updated = replace(
                current,
                alpha=current.alpha + (1.0 if event.success else 0.0),
                beta=current.beta + (0.0 if event.success else 1.0),
                total_trials=n + 1,
                avg_reward=incremental_mean(current.avg_reward, n, event.reward),
                avg_latency_ms=incremental_mean(current.avg_latency_ms, n, event.latency_ms),
                avg_token_cost=incremental_mean(current.avg_token_cost, n, event.token_cost)
            )
            self.storage.save_feedback(updated, event)

        logger.debug(
            f"Feedback for {event.variant_id}: success={event.success}, "
            f"alpha={updated.alpha:.2f}, beta={updated.beta:.2f}, trials={updated.total_trials}"
        )
        return updated

    def boost(self, variant_id: str, field: str, amount: float) -> PerformancePosterior:
        """
        Add pseudo-counts to alpha or beta without touching trials or averages

        A variant with no stored posterior gets one materialized from the
        default prior before the boost.
        """
        if field not in BOOSTABLE_FIELDS:
            raise InvalidArgument(f"Cannot boost '{field}', expected one of {BOOSTABLE_FIELDS}")
        if amount <= 0:
            raise InvalidArgument(f"Boost amount must be positive, got {amount}")

        with self.lock_for(variant_id):
            current = self.get(variant_id)
            updated = replace(current, **{field: getattr(current, field) + amount})
            self.storage.save_posterior(updated)

        logger.debug(f"Boosted {field} of {variant_id} by {amount}")
        return updated

    def delete(self, variant_id: str) -> bool:
        """Remove a variant and its posterior while no update is in flight"""
        with self.lock_for(variant_id):
            return self.storage.delete_variant(variant_id)
