"""
Tests for the preference updater.
"""

import pytest

from ab_learning.core.exceptions import InvalidArgument
from ab_learning.evolution.preference_learner import PreferenceUpdater


class TestPreferenceUpdater:
    """Test PreferenceUpdater."""

    def test_boosts_winner_alpha_and_loser_beta(self, storage, posterior_store):
        winner = storage.create_variant("winner").id
        loser = storage.create_variant("loser").id
        updater = PreferenceUpdater(storage, posterior_store)

        updater.record_preference(winner, loser, context="tone", human_feedback=True)

        w = posterior_store.get(winner)
        l = posterior_store.get(loser)
        assert (w.alpha, w.beta) == (pytest.approx(1.1), 1.0)
        assert (l.alpha, l.beta) == (1.0, pytest.approx(1.1))

    def test_trial_counts_untouched(self, storage, posterior_store):
        """Boosts change pseudo-counts, not trial counts or averages."""
        winner = storage.create_variant("winner").id
        loser = storage.create_variant("loser").id
        updater = PreferenceUpdater(storage, posterior_store)

        for _ in range(5):
            updater.record_preference(winner, loser)

        assert posterior_store.get(winner).total_trials == 0
        assert posterior_store.get(winner).alpha == pytest.approx(1.5)
        assert posterior_store.get(loser).avg_reward == 0.0

    def test_comparison_is_stored(self, storage, posterior_store):
        updater = PreferenceUpdater(storage, posterior_store)

        updater.record_preference("a", "b", context="ctx")

        history = updater.get_preferences("a")
        assert len(history) == 1
        assert (history[0].winner_id, history[0].loser_id, history[0].context) == ("a", "b", "ctx")
        assert history[0].human_feedback is False

    def test_unknown_ids_are_materialized(self, storage, posterior_store):
        """Unknown ids get a default prior created on demand."""
        PreferenceUpdater(storage, posterior_store).record_preference("new-w", "new-l")

        assert storage.get_posterior("new-w").alpha == pytest.approx(1.1)
        assert storage.get_posterior("new-l").beta == pytest.approx(1.1)

    def test_self_preference_rejected(self, storage, posterior_store):
        """winner == loser is a precondition violation and changes nothing."""
        variant = storage.create_variant("solo").id
        updater = PreferenceUpdater(storage, posterior_store)

        with pytest.raises(InvalidArgument):
            updater.record_preference(variant, variant)

        assert posterior_store.get(variant).alpha == 1.0
        assert updater.get_preferences() == []

    def test_custom_boost(self, storage, posterior_store):
        updater = PreferenceUpdater(storage, posterior_store, boost=0.5)

        updater.record_preference("a", "b")

        assert posterior_store.get("a").alpha == pytest.approx(1.5)

    def test_invalid_boost(self, storage, posterior_store):
        with pytest.raises(InvalidArgument):
            PreferenceUpdater(storage, posterior_store, boost=0.0)
