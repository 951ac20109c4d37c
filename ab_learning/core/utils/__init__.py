"""
Reusable utility modules for core functionality
"""

from .retry_handler import RetryHandler, RetryConfig, RetryStrategy
from .clock import Clock, SystemClock, ManualClock

__all__ = [
    'RetryHandler',
    'RetryConfig',
    'RetryStrategy',
    'Clock',
    'SystemClock',
    'ManualClock'
]
