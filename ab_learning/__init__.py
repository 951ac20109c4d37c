"""
A/B Learning: self-tuning variant selection
Thompson sampling, Monte-Carlo A/B evaluation and evolutionary variant breeding
"""

# Core components
from .core import (
    ABLearningError,
    InvalidArgument,
    StorageError,
    StatisticalUndefined,
    GenerationError,
    ConfigManager,
    DecisionRecorder,
    AuditLogger,
    RewardFunction,
    BinaryRewardFunction,
    CostAwareRewardFunction,
    ContextExtractor,
    HashingContextExtractor
)
from .core.utils import ManualClock, SystemClock

# Storage components
from .storage import (
    VariantStorage,
    PosteriorStore,
    Variant,
    PerformancePosterior,
    FeedbackEvent,
    PreferenceComparison
)

# Evolution components
from .evolution import (
    BayesianSampler,
    ThompsonSamplingSelector,
    ContextualBanditSelector,
    StatisticalEvaluator,
    ABTestResult,
    PromptEvolutionEngine,
    PreferenceUpdater,
    MaintenanceController,
    CycleReport
)

# Ollama components
from .ollama import (
    OllamaManager,
    GenerativeOperator,
    OllamaGenerativeOperator,
    TemplateSplicingOperator
)

from .core.ab_learning_engine import ABLearningEngine

__version__ = "1.0.0"

__all__ = [
    'ABLearningEngine',
    'ABLearningError',
    'InvalidArgument',
    'StorageError',
    'StatisticalUndefined',
    'GenerationError',
    'ConfigManager',
    'DecisionRecorder',
    'AuditLogger',
    'RewardFunction',
    'BinaryRewardFunction',
    'CostAwareRewardFunction',
    'ContextExtractor',
    'HashingContextExtractor',
    'ManualClock',
    'SystemClock',
    'VariantStorage',
    'PosteriorStore',
    'Variant',
    'PerformancePosterior',
    'FeedbackEvent',
    'PreferenceComparison',
    'BayesianSampler',
    'ThompsonSamplingSelector',
    'ContextualBanditSelector',
    'StatisticalEvaluator',
    'ABTestResult',
    'PromptEvolutionEngine',
    'PreferenceUpdater',
    'MaintenanceController',
    'CycleReport',
    'OllamaManager',
    'GenerativeOperator',
    'OllamaGenerativeOperator',
    'TemplateSplicingOperator'
]
