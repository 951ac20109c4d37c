"""
Core components: errors, configuration, recording and strategies
The engine facade lives in ab_learning_engine and is exported from the top-level package
"""

from .exceptions import (
    ABLearningError,
    InvalidArgument,
    StorageError,
    StatisticalUndefined,
    GenerationError
)
from .config import ConfigManager, load_config, save_config
from .recorder import DecisionRecorder, DecisionRecord, AuditLogger
from .strategies import (
    RewardFunction,
    BinaryRewardFunction,
    CostAwareRewardFunction,
    ContextExtractor,
    HashingContextExtractor
)

__all__ = [
    'ABLearningError',
    'InvalidArgument',
    'StorageError',
    'StatisticalUndefined',
    'GenerationError',
    'ConfigManager',
    'load_config',
    'save_config',
    'DecisionRecorder',
    'DecisionRecord',
    'AuditLogger',
    'RewardFunction',
    'BinaryRewardFunction',
    'CostAwareRewardFunction',
    'ContextExtractor',
    'HashingContextExtractor'
]
