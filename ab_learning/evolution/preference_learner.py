"""
Preference Learning
Pairwise comparisons nudge posteriors toward the preferred variant
"""

import logging
import time
from typing import List, Optional

from ..core.exceptions import InvalidArgument
from ..storage.posterior_store import PosteriorStore
from ..storage.variant_storage import PreferenceComparison, VariantStorage

logger = logging.getLogger(__name__)


class PreferenceUpdater:
    """
    Bradley-Terry style update from pairwise preferences

    The winner's alpha and the loser's beta each grow by a fixed boost.
    Trial counts and averages are left alone.
    """

    def __init__(self, storage: VariantStorage, posterior_store: PosteriorStore, boost: float = 0.1):
        if boost <= 0:
            raise InvalidArgument(f"boost must be positive, got {boost}")
        self.storage = storage
        self.posterior_store = posterior_store
        self.boost = boost

    def record_preference(
        self,
        winner_id: str,
        loser_id: str,
        context: str = "",
        human_feedback: bool = False,
        timestamp: Optional[float] = None
    ) -> PreferenceComparison:
        """
        Record that one variant was preferred over another

        Args:
            winner_id: Preferred variant
            loser_id: Rejected variant
            context: Free text describing the comparison
            human_feedback: True if a person made the judgement
            timestamp: Comparison time (defaults to now)

        Returns:
            The stored comparison
        """
        if winner_id == loser_id:
            raise InvalidArgument(f"A variant cannot be preferred over itself: {winner_id}")

        comparison = PreferenceComparison(
            winner_id=winner_id,
            loser_id=loser_id,
            context=context,
            human_feedback=human_feedback,
            timestamp=timestamp if timestamp is not None else time.time()
        )
        self.storage.store_preference(comparison)

        self.posterior_store.boost(winner_id, 'alpha', self.boost)
        self.posterior_store.boost(loser_id, 'beta', self.boost)

        logger.info(f"Preference recorded: {winner_id} > {loser_id} (human={human_feedback})")
        return comparison

    def get_preferences(self, variant_id: Optional[str] = None, limit: int = 1000) -> List[PreferenceComparison]:
        return self.storage.get_preferences(variant_id, limit)
