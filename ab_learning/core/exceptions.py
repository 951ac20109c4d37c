"""
Exception hierarchy for the A/B learning engine
"""


class ABLearningError(Exception):
    """Base class for all engine errors"""


class InvalidArgument(ABLearningError, ValueError):
    """A caller violated an operation precondition"""


class StorageError(ABLearningError):
    """The durable store failed to read or write"""


class StatisticalUndefined(ABLearningError, ArithmeticError):
    """A statistical routine produced an undefined value (NaN, out of range)"""


class GenerationError(ABLearningError):
    """The generative backend failed to produce content"""
