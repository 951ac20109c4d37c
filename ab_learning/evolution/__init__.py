"""
Learning components: sampling, selection, evaluation and evolution
"""

from .bayesian_sampler import BayesianSampler
from .advanced_bandits import (
    AdaptiveExplorationScheduler,
    ThompsonSamplingSelector,
    ContextualBanditSelector
)
from .ab_evaluator import ABTestResult, StatisticalEvaluator
from .prompt_evolution_engine import PromptEvolutionEngine
from .preference_learner import PreferenceUpdater
from .maintenance_controller import MaintenanceController, CycleReport

__all__ = [
    'BayesianSampler',
    'AdaptiveExplorationScheduler',
    'ThompsonSamplingSelector',
    'ContextualBanditSelector',
    'ABTestResult',
    'StatisticalEvaluator',
    'PromptEvolutionEngine',
    'PreferenceUpdater',
    'MaintenanceController',
    'CycleReport'
]
