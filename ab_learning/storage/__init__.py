"""
Storage components: variants, posteriors and append-only history
"""

from .variant_storage import (
    VariantStorage,
    Variant,
    PerformancePosterior,
    FeedbackEvent,
    PreferenceComparison,
    ContextualObservation,
    ExperimentAssignment
)
from .posterior_store import PosteriorStore, incremental_mean

__all__ = [
    'VariantStorage',
    'Variant',
    'PerformancePosterior',
    'FeedbackEvent',
    'PreferenceComparison',
    'ContextualObservation',
    'ExperimentAssignment',
    'PosteriorStore',
    'incremental_mean'
]
