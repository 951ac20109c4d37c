"""
Swappable strategy objects
Reward functions turn raw outcomes into rewards; context extractors turn
request context into feature vectors
"""

import hashlib
import math
import re
from typing import List

from .exceptions import InvalidArgument


class RewardFunction:
    """Maps an observed outcome to a scalar reward"""

    def compute(self, success: bool, latency_ms: float, token_cost: float) -> float:
        raise NotImplementedError


class BinaryRewardFunction(RewardFunction):
    """1.0 for success, 0.0 otherwise"""

    def compute(self, success: bool, latency_ms: float, token_cost: float) -> float:
        return 1.0 if success else 0.0


class CostAwareRewardFunction(RewardFunction):
    """
    Success reward minus normalized latency and cost penalties

    reward = success - lambda_latency * latency/latency_scale
                     - lambda_cost * cost/cost_scale, clipped to [0, 1]
    """

    def __init__(
        self,
        lambda_latency: float = 0.1,
        lambda_cost: float = 0.1,
        latency_scale: float = 1000.0,
        cost_scale: float = 1000.0
    ):
        if latency_scale <= 0 or cost_scale <= 0:
            raise InvalidArgument("latency_scale and cost_scale must be positive")
        self.lambda_latency = lambda_latency
        self.lambda_cost = lambda_cost
        self.latency_scale = latency_scale
        self.cost_scale = cost_scale

    def compute(self, success: bool, latency_ms: float, token_cost: float) -> float:
        reward = 1.0 if success else 0.0
        reward -= self.lambda_latency * (latency_ms / self.latency_scale)
        reward -= self.lambda_cost * (token_cost / self.cost_scale)
        return max(0.0, min(1.0, reward))


class ContextExtractor:
    """Maps a request context to a numeric feature vector"""

    def extract(self, context: str) -> List[float]:
        raise NotImplementedError


class HashingContextExtractor(ContextExtractor):
    """Bag-of-words hashed into a fixed number of buckets, L2-normalized"""

    _TOKEN = re.compile(r'\w+')

    def __init__(self, dimensions: int = 8):
        if dimensions <= 0:
            raise InvalidArgument(f"dimensions must be positive, got {dimensions}")
        self.dimensions = dimensions

    def extract(self, context: str) -> List[float]:
        features = [0.0] * self.dimensions
        for token in self._TOKEN.findall(context.lower()):
            bucket = int(hashlib.md5(token.encode()).hexdigest(), 16) % self.dimensions
            features[bucket] += 1.0

        norm = math.sqrt(sum(f * f for f in features))
        if norm == 0:
            return features
        return [f / norm for f in features]
