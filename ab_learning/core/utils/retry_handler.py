"""
Retry Handler with configurable backoff strategies
Used around calls to the generative backend
"""

import time
import logging
from typing import Any, Callable, Dict, Optional, Tuple, Type
from enum import Enum
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class RetryStrategy(Enum):
    """Retry strategy types"""
    LINEAR = "linear"  # Fixed delay between retries
    EXPONENTIAL = "exponential"  # Exponential backoff
    FIBONACCI = "fibonacci"  # Fibonacci backoff


@dataclass
class RetryConfig:
    """Configuration for retry behavior"""
    max_retries: int = 3
    strategy: RetryStrategy = RetryStrategy.EXPONENTIAL
    base_delay: float = 1.0  # Seconds
    max_delay: float = 60.0  # Seconds
    multiplier: float = 2.0  # For exponential backoff
    retryable_exceptions: Tuple[Type[BaseException], ...] = field(default_factory=lambda: (Exception,))

    def to_dict(self) -> Dict:
        return {
            'max_retries': self.max_retries,
            'strategy': self.strategy.value,
            'base_delay': self.base_delay,
            'max_delay': self.max_delay,
            'multiplier': self.multiplier
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'RetryConfig':
        return cls(
            max_retries=data.get('max_retries', 3),
            strategy=RetryStrategy(data.get('strategy', 'exponential')),
            base_delay=data.get('base_delay', 1.0),
            max_delay=data.get('max_delay', 60.0),
            multiplier=data.get('multiplier', 2.0)
        )


class RetryHandler:
    """Runs a callable, retrying retryable exceptions with backoff"""

    def __init__(self, config: Optional[RetryConfig] = None, sleep: Callable[[float], None] = time.sleep):
        """
        Initialize retry handler

        Args:
            config: Retry configuration (uses default if None)
            sleep: Sleep function, replaceable in tests
        """
        self.config = config or RetryConfig()
        self._sleep = sleep
        self._stats = {
            'total_attempts': 0,
            'successful_retries': 0,
            'failed_retries': 0,
            'total_delay_time': 0.0
        }

    def calculate_delay(self, attempt: int) -> float:
        """
        Delay before the retry following `attempt` (0-indexed)

        Returns:
            Delay in seconds, capped at max_delay
        """
        if self.config.strategy == RetryStrategy.LINEAR:
            delay = self.config.base_delay
        elif self.config.strategy == RetryStrategy.EXPONENTIAL:
            delay = self.config.base_delay * (self.config.multiplier ** attempt)
        else:
            # Fibonacci sequence: 1, 1, 2, 3, 5, 8, ...
            a, b = 1, 1
            for _ in range(attempt):
                a, b = b, a + b
            delay = self.config.base_delay * a

        return min(delay, self.config.max_delay)

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        if attempt >= self.config.max_retries:
            return False
        return isinstance(error, self.config.retryable_exceptions)

    def execute_with_retry(
        self,
        func: Callable,
        *args,
        on_retry: Optional[Callable[[int, BaseException], None]] = None,
        **kwargs
    ) -> Any:
        """
        Execute a function with retry logic

        Args:
            func: Function to execute
            *args: Positional arguments for func
            on_retry: Callback called before each retry (attempt_num, error)
            **kwargs: Keyword arguments for func

        Returns:
            Result from func if successful

        Raises:
            The last exception once retries are exhausted
        """
        attempt = 0
        while True:
            self._stats['total_attempts'] += 1
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                if not self.should_retry(e, attempt):
                    self._stats['failed_retries'] += 1
                    raise
                if on_retry:
                    on_retry(attempt, e)
                delay = self.calculate_delay(attempt)
                self._stats['total_delay_time'] += delay
                logger.debug(f"Retrying after {delay:.2f}s (attempt {attempt + 1}/{self.config.max_retries + 1}): {e}")
                self._sleep(delay)
                attempt += 1
                continue

            if attempt > 0:
                self._stats['successful_retries'] += 1
            return result

    def get_stats(self) -> Dict:
        return {
            **self._stats,
            'config': self.config.to_dict()
        }
